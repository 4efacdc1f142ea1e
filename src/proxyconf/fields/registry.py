from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Dict, Iterable, Iterator, Optional, Tuple

from proxyconf.exceptions import (
    ConfigDuplicateError,
    ConfigNotFoundError,
    ConfigValidationError,
    UnknownKeyError,
)

from .spec import FieldSpec

if TYPE_CHECKING:
    from proxyconf.node import Location

logger = logging.getLogger("proxyconf.fields")
logger.addHandler(logging.NullHandler())


def normalize_key(key: str) -> str:
    """``Listen-In-Worker`` and ``listen_in_worker`` name the same key."""
    return key.strip().lower().replace("-", "_")


class FieldRegistry:
    """The keys one builder accepts, with their aliases."""

    def __init__(self, specs: Iterable[FieldSpec] = ()) -> None:
        self._specs: Dict[str, FieldSpec] = {}
        self._aliases: Dict[str, str] = {}
        self._deprecated: Dict[str, str] = {}
        for spec in specs:
            self.register(spec)

    def register(self, spec: FieldSpec, override: bool = False) -> None:
        key = normalize_key(spec.name)
        if not override and key in self._specs:
            logger.error("Register failed: %r already registered", key)
            raise ConfigDuplicateError({spec.name: "Field already registered."})
        self._specs[key] = spec
        self._register_aliases(spec.aliases, key, self._aliases, override)
        self._register_aliases(spec.deprecated, key, self._deprecated, override)

    def _register_aliases(
        self, aliases: Iterable[str], key: str, table: Dict[str, str], override: bool
    ) -> None:
        for a in aliases:
            ak = normalize_key(a)
            taken = self._aliases.get(ak) or self._deprecated.get(ak)
            if ak in self._specs or (not override and taken is not None and taken != key):
                logger.error("Alias conflict: %r already points to %r", ak, taken or ak)
                raise ConfigValidationError({a: f"Alias already used for {taken or ak}."})
            table[ak] = key

    def has(self, name_or_alias: str) -> bool:
        return self._lookup(name_or_alias)[0] is not None

    def get(self, name_or_alias: str) -> FieldSpec:
        key, _ = self._lookup(name_or_alias)
        if key is None:
            raise ConfigNotFoundError({name_or_alias: "Unknown field."})
        return self._specs[key]

    def resolve(self, raw_key: str, location: Optional["Location"] = None) -> str:
        """
        Map a key as written in the document to its canonical name.

        Unknown keys fail with UnknownKeyError; deprecated spellings are
        accepted with a warning.
        """
        key, deprecated = self._lookup(raw_key)
        if key is None:
            raise UnknownKeyError(raw_key, location)
        if deprecated:
            logger.warning("Deprecated config key %r, please use %r instead", raw_key, key)
        return key

    def _lookup(self, name_or_alias: str) -> Tuple[Optional[str], bool]:
        k = normalize_key(name_or_alias)
        if k in self._specs:
            return k, False
        if k in self._aliases:
            return self._aliases[k], False
        if k in self._deprecated:
            return self._deprecated[k], True
        return None, False

    def required(self) -> Tuple[FieldSpec, ...]:
        return tuple(s for s in self._specs.values() if s.required)

    def all_names(self) -> Tuple[str, ...]:
        return tuple(self._specs.keys())

    def __iter__(self) -> Iterator[FieldSpec]:
        return iter(tuple(self._specs.values()))

    def __len__(self) -> int:
        return len(self._specs)
