from __future__ import annotations

from typing import TYPE_CHECKING, Any

from typing_extensions import Protocol, runtime_checkable

if TYPE_CHECKING:
    from proxyconf.context import ConversionContext
    from proxyconf.node import DocNode


@runtime_checkable
class ConverterProtocol(Protocol):
    """A converter turns one node into a value or raises ConversionError."""

    def __call__(self, node: DocNode, ctx: ConversionContext) -> Any:
        ...
