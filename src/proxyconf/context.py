from __future__ import annotations

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING, Iterator, List, Optional, Tuple, Union

from proxyconf.capabilities import Capability, CapabilityRegistry, get_capabilities
from proxyconf.exceptions import ConversionError, PathSegment

if TYPE_CHECKING:
    from proxyconf.node import Location

logger = logging.getLogger("proxyconf.context")
logger.addHandler(logging.NullHandler())

__all__ = ["ConversionContext"]


class ConversionContext:
    """
    Per-call state threaded through every converter and builder.

    Holds the key path of the node currently being converted, the capability
    set the call runs against and the directory relative file paths are
    resolved from. One context belongs to exactly one top-level conversion;
    it must never be shared between concurrent calls.
    """

    def __init__(
        self,
        capabilities: Optional[CapabilityRegistry] = None,
        lookup_dir: Optional[Union[str, Path]] = None,
    ) -> None:
        self._segments: List[PathSegment] = []
        self.capabilities = capabilities if capabilities is not None else get_capabilities()
        self.lookup_dir = Path(lookup_dir) if lookup_dir is not None else None

    @property
    def path(self) -> Tuple[PathSegment, ...]:
        return tuple(self._segments)

    @property
    def dotted_path(self) -> str:
        return ".".join(str(s) for s in self._segments)

    @contextmanager
    def enter(self, segment: PathSegment) -> Iterator["ConversionContext"]:
        """
        Push ``segment`` for the duration of the block.

        A ConversionError leaving the block gets the path as it was at the
        point of failure, before the segment is popped.
        """
        self._segments.append(segment)
        try:
            yield self
        except ConversionError as exc:
            exc.attach_path(self._segments)
            raise
        finally:
            self._segments.pop()

    def has(self, cap: Union[str, Capability]) -> bool:
        return self.capabilities.has(cap)

    def require(
        self,
        cap: Union[str, Capability],
        location: Optional["Location"] = None,
        detail: Optional[str] = None,
    ) -> None:
        self.capabilities.require(cap, location, detail)

    def resolve_path(self, value: Union[str, Path]) -> Path:
        p = Path(value).expanduser()
        if not p.is_absolute() and self.lookup_dir is not None:
            p = self.lookup_dir / p
        return p

    def __repr__(self) -> str:
        return f"<ConversionContext path={self.dotted_path or '<root>'} caps={self.capabilities!r}>"
