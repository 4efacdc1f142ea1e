from __future__ import annotations

import logging
from typing import Any, ClassVar, ContextManager, Dict, Generic, Iterable, Optional, Tuple, TypeVar

from proxyconf.capabilities import Capability
from proxyconf.context import ConversionContext
from proxyconf.exceptions import DuplicateKeyError, InvalidValueError, MissingKeyError
from proxyconf.fields import FieldRegistry, normalize_key
from proxyconf.node import DocNode, Location, MappingView

logger = logging.getLogger("proxyconf.builders")
logger.addHandler(logging.NullHandler())

T = TypeVar("T")

__all__ = ["MappingBuilder", "FieldValues"]


class FieldValues(Dict[str, Any]):
    """Converted values by canonical key, remembering how each key was spelled."""

    def __init__(self) -> None:
        super().__init__()
        self.raw_keys: Dict[str, str] = {}

    def enter(self, ctx: ConversionContext, key: str) -> ContextManager[ConversionContext]:
        """Enter the path segment of ``key`` as written in the document."""
        return ctx.enter(self.raw_keys.get(key, key))


class MappingBuilder(Generic[T]):
    """
    Converts one mapping node into one immutable value object.

    Subclasses declare the keys they accept in ``fields`` and implement
    ``finish`` for cross-field checks and construction. Instances hold no
    state, so one instance can be shared and used directly as a converter.
    """

    fields: ClassVar[FieldRegistry] = FieldRegistry()
    capability: ClassVar[Optional[Capability]] = None
    what: ClassVar[str] = "mapping"

    def __call__(self, node: DocNode, ctx: ConversionContext) -> T:
        return self.build(node, ctx)

    def build(self, node: DocNode, ctx: ConversionContext) -> T:
        self.check_capability(node, ctx)
        values = self.collect(node, ctx)
        result = self.finish(values, node, ctx)
        logger.debug("Built %s at %s", self.what, ctx.dotted_path or "<root>")
        return result

    def check_capability(self, node: DocNode, ctx: ConversionContext) -> None:
        if self.capability is not None:
            ctx.require(
                self.capability,
                node.location,
                f"{self.what} requires capability {self.capability.value!r}, which is not enabled",
            )

    def collect(self, node: DocNode, ctx: ConversionContext) -> FieldValues:
        """
        Convert every key of the mapping, then fill defaults.

        Keys are resolved through ``fields`` so aliases and differently
        cased spellings land on one canonical name; giving that name twice
        is a DuplicateKey even when the raw spellings differ.
        """
        view = MappingView(node)
        values = FieldValues()
        seen: Dict[str, Location] = {}
        for raw_key, child in view.items(ctx):
            with ctx.enter(raw_key):
                key = self.fields.resolve(raw_key, child.location)
                if key in seen:
                    raise DuplicateKeyError(key, child.location, first=seen[key])
                seen[key] = child.location
                values.raw_keys[key] = raw_key
                values[key] = self.fields.get(key).convert(child, ctx)

        for spec in self.fields:
            key = normalize_key(spec.name)
            if key in values:
                continue
            if spec.required:
                raise MissingKeyError(spec.name, view.location)
            values[key] = spec.default
        return values

    def finish(self, values: FieldValues, node: DocNode, ctx: ConversionContext) -> T:
        raise NotImplementedError

    @staticmethod
    def exactly_one(values: Dict[str, Any], names: Iterable[str], node: DocNode) -> Tuple[str, Any]:
        """Return the single key of ``names`` that has a value."""
        names = tuple(names)
        given = [n for n in names if values.get(n) is not None]
        if not given:
            raise MissingKeyError(" or ".join(names), node.location)
        if len(given) > 1:
            raise InvalidValueError(
                f"only one of {', '.join(names)} may be set, got {', '.join(given)}", node.location
            )
        return given[0], values[given[0]]
