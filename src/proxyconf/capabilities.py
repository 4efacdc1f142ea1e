"""
Capability registry: the fixed set of optional subsystems a deployment supports.

The set is resolved once per process and never changes afterwards. Builders
for a capability stay importable even when it is disabled; they fail with
``UnsupportedFeatureError`` so the operator gets a clear diagnostic.
"""

from __future__ import annotations

import logging
import os
from enum import Enum
from functools import lru_cache
from typing import TYPE_CHECKING, Dict, FrozenSet, Iterable, Iterator, Optional, Tuple, Union

from proxyconf.exceptions import ConfigNotFoundError, UnsupportedFeatureError

if TYPE_CHECKING:
    from proxyconf.node import Location

logger = logging.getLogger("proxyconf.capabilities")
logger.addHandler(logging.NullHandler())

__all__ = [
    "Capability",
    "CapabilityRegistry",
    "get_capabilities",
    "CAPABILITIES_ENV",
]

CAPABILITIES_ENV = "PROXYCONF_CAPABILITIES"


class Capability(str, Enum):
    REGEX = "regex"
    ACL_RULE = "acl-rule"
    DPI = "dpi"
    GEOIP = "geoip"
    HISTOGRAM = "histogram"
    HTTP = "http"
    OPENSSL = "openssl"
    RUSTLS = "rustls"
    QUINN = "quinn"
    ROUTE = "route"
    SCHED = "sched"
    RESOLVE = "resolve"


# enabling a capability enables what it is built on
_REQUIRES: Dict[Capability, Tuple[Capability, ...]] = {
    Capability.ACL_RULE: (Capability.REGEX,),
    Capability.DPI: (Capability.ACL_RULE,),
}


def _canon(name: str) -> str:
    return name.strip().lower().replace("_", "-")


def _resolve(name: Union[str, Capability]) -> Capability:
    if isinstance(name, Capability):
        return name
    if isinstance(name, str):
        canon = _canon(name)
        for cap in Capability:
            if cap.value == canon:
                return cap
    logger.error("Unknown capability: %r", name)
    raise ConfigNotFoundError({str(name): "Unknown capability."})


def _closure(caps: Iterable[Capability]) -> FrozenSet[Capability]:
    out = set()
    pending = list(caps)
    while pending:
        cap = pending.pop()
        if cap in out:
            continue
        out.add(cap)
        pending.extend(_REQUIRES.get(cap, ()))
    return frozenset(out)


class CapabilityRegistry:
    """An immutable, dependency-closed set of enabled capabilities."""

    __slots__ = ("_enabled",)

    def __init__(self, enabled: Iterable[Union[str, Capability]] = ()) -> None:
        object.__setattr__(self, "_enabled", _closure(_resolve(c) for c in enabled))

    def __setattr__(self, name: str, value: object) -> None:
        raise AttributeError("CapabilityRegistry is immutable")

    @classmethod
    def of(cls, *names: Union[str, Capability]) -> "CapabilityRegistry":
        return cls(names)

    @classmethod
    def all(cls) -> "CapabilityRegistry":
        return cls(Capability)

    @classmethod
    def none(cls) -> "CapabilityRegistry":
        return cls(())

    @classmethod
    def from_env(cls, value: Optional[str]) -> "CapabilityRegistry":
        """Parse ``all``, ``none`` or a comma separated capability list."""
        if value is None or value.strip().lower() in ("", "all"):
            return cls.all()
        if value.strip().lower() == "none":
            return cls.none()
        return cls(part for part in value.split(",") if part.strip())

    @property
    def enabled(self) -> FrozenSet[Capability]:
        return self._enabled

    def has(self, cap: Union[str, Capability]) -> bool:
        return _resolve(cap) in self._enabled

    def require(
        self,
        cap: Union[str, Capability],
        location: Optional["Location"] = None,
        detail: Optional[str] = None,
    ) -> None:
        capability = _resolve(cap)
        if capability not in self._enabled:
            raise UnsupportedFeatureError(capability.value, location, detail)

    def __contains__(self, cap: object) -> bool:
        if not isinstance(cap, (str, Capability)):
            return False
        try:
            return self.has(cap)
        except ConfigNotFoundError:
            return False

    def __iter__(self) -> Iterator[Capability]:
        return iter(sorted(self._enabled, key=lambda c: c.value))

    def __len__(self) -> int:
        return len(self._enabled)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, CapabilityRegistry):
            return False
        return self._enabled == other._enabled

    def __hash__(self) -> int:
        return hash(self._enabled)

    def __repr__(self) -> str:
        names = ",".join(c.value for c in self)
        return f"<CapabilityRegistry {names or '-'}>"


@lru_cache(maxsize=1)
def get_capabilities() -> CapabilityRegistry:
    """Return the process-wide capability set, resolved once from the environment."""
    registry = CapabilityRegistry.from_env(os.getenv(CAPABILITIES_ENV))
    logger.debug("Process capabilities resolved: %r", registry)
    return registry
