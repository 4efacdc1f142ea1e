from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, Optional, Tuple

from proxyconf.capabilities import Capability
from proxyconf.value.protocol import ConverterProtocol

if TYPE_CHECKING:
    from proxyconf.context import ConversionContext
    from proxyconf.node import DocNode


@dataclass(frozen=True)
class FieldSpec:
    name: str
    converter: ConverterProtocol
    default: Any = None
    required: bool = False
    aliases: Tuple[str, ...] = ()
    deprecated: Tuple[str, ...] = ()
    capability: Optional[Capability] = None
    description: Optional[str] = None

    def convert(self, node: "DocNode", ctx: "ConversionContext") -> Any:
        if self.capability is not None:
            ctx.require(self.capability, node.location)
        return self.converter(node, ctx)

    def to_mapping(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {"default": self.default, "required": self.required}
        if self.aliases:
            d["aliases"] = self.aliases
        if self.deprecated:
            d["deprecated"] = self.deprecated
        if self.capability is not None:
            d["capability"] = self.capability.value
        if self.description:
            d["description"] = self.description
        return d
