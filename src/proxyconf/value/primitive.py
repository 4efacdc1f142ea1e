from __future__ import annotations

import math
import re
from types import MappingProxyType
from typing import Any, Callable, Dict, Mapping, Optional, Tuple, TypeVar, Union

from proxyconf.context import ConversionContext
from proxyconf.exceptions import (
    InvalidBooleanError,
    InvalidIntegerError,
    InvalidValueError,
    OutOfRangeError,
    TypeMismatchError,
)
from proxyconf.node import (
    DocNode,
    MappingView,
    NodeKind,
    expect_scalar,
    is_null,
    iter_sequence,
)

T = TypeVar("T")
Number = Union[int, float]

__all__ = [
    "as_int",
    "as_u16",
    "as_u32",
    "as_usize",
    "as_port",
    "as_nonzero_port",
    "as_float",
    "as_number",
    "as_bool",
    "as_str",
    "as_ascii",
    "as_node_name",
    "as_choice",
    "as_list",
    "as_static_tags",
    "check_range",
]

_INT_RE = re.compile(r"^[+-]?[0-9]+(?:_[0-9]+)*$")
_FLOAT_RE = re.compile(r"^[+-]?(?:[0-9]+(?:\.[0-9]*)?|\.[0-9]+)(?:[eE][+-]?[0-9]+)?$")
_NODE_NAME_RE = re.compile(r"^[A-Za-z0-9_.\-/]+$")
_NODE_NAME_MAX_LEN = 128

# documented boolean spellings; yes/no/1/0 are deliberately not among them
_TRUE = frozenset({"true", "on"})
_FALSE = frozenset({"false", "off"})

U16_MAX = 0xFFFF
U32_MAX = 0xFFFF_FFFF
USIZE_MAX = 0xFFFF_FFFF_FFFF_FFFF


def check_range(
    value: Number,
    node: DocNode,
    minimum: Optional[Number] = None,
    maximum: Optional[Number] = None,
) -> Number:
    if (minimum is not None and value < minimum) or (maximum is not None and value > maximum):
        lo = "-inf" if minimum is None else minimum
        hi = "+inf" if maximum is None else maximum
        raise OutOfRangeError(f"value {value} out of range [{lo}, {hi}]", node.location)
    return value


def as_int(
    node: DocNode,
    ctx: ConversionContext,
    *,
    minimum: Optional[int] = None,
    maximum: Optional[int] = None,
) -> int:
    text = expect_scalar(node, "integer").strip()
    if not _INT_RE.match(text):
        raise InvalidIntegerError(f"invalid integer value {text!r}", node.location)
    value = int(text.replace("_", ""))
    check_range(value, node, minimum, maximum)
    return value


def as_u16(node: DocNode, ctx: ConversionContext) -> int:
    return as_int(node, ctx, minimum=0, maximum=U16_MAX)


def as_u32(node: DocNode, ctx: ConversionContext) -> int:
    return as_int(node, ctx, minimum=0, maximum=U32_MAX)


def as_usize(node: DocNode, ctx: ConversionContext) -> int:
    return as_int(node, ctx, minimum=0, maximum=USIZE_MAX)


def as_port(node: DocNode, ctx: ConversionContext) -> int:
    return as_int(node, ctx, minimum=0, maximum=U16_MAX)


def as_nonzero_port(node: DocNode, ctx: ConversionContext) -> int:
    return as_int(node, ctx, minimum=1, maximum=U16_MAX)


def as_float(
    node: DocNode,
    ctx: ConversionContext,
    *,
    minimum: Optional[float] = None,
    maximum: Optional[float] = None,
) -> float:
    text = expect_scalar(node, "number").strip()
    if not _FLOAT_RE.match(text):
        raise InvalidValueError(f"invalid number {text!r}", node.location)
    value = float(text)
    if not math.isfinite(value):
        raise InvalidValueError(f"number {text!r} is not finite", node.location)
    check_range(value, node, minimum, maximum)
    return value


def as_number(node: DocNode, ctx: ConversionContext) -> Number:
    """An int when the text is an integer, a float otherwise."""
    text = expect_scalar(node, "number").strip()
    if _INT_RE.match(text):
        return int(text.replace("_", ""))
    return as_float(node, ctx)


def as_bool(node: DocNode, ctx: ConversionContext) -> bool:
    text = expect_scalar(node, "boolean").strip().lower()
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    raise InvalidBooleanError(
        f"invalid boolean value {node.text!r}, expected one of true/false/on/off", node.location
    )


def as_str(node: DocNode, ctx: ConversionContext) -> str:
    if is_null(node):
        raise TypeMismatchError("string", "null", node.location)
    return expect_scalar(node, "string")


def as_ascii(node: DocNode, ctx: ConversionContext) -> str:
    text = as_str(node, ctx)
    if not text:
        raise InvalidValueError("empty string is not allowed", node.location)
    if not all(0x20 <= ord(c) < 0x7F for c in text):
        raise InvalidValueError(f"{text!r} is not a printable ascii string", node.location)
    return text


def as_node_name(node: DocNode, ctx: ConversionContext) -> str:
    text = as_str(node, ctx).strip()
    if not text or len(text) > _NODE_NAME_MAX_LEN:
        raise InvalidValueError(
            f"node name must be 1 to {_NODE_NAME_MAX_LEN} characters long", node.location
        )
    if not _NODE_NAME_RE.match(text):
        raise InvalidValueError(f"invalid node name {text!r}", node.location)
    return text


def as_choice(
    choices: Mapping[str, T], what: str = "value"
) -> Callable[[DocNode, ConversionContext], T]:
    """Build a converter accepting one of the (normalised) keys of ``choices``."""

    def convert(node: DocNode, ctx: ConversionContext) -> T:
        text = as_str(node, ctx).strip().lower().replace("-", "_")
        try:
            return choices[text]
        except KeyError:
            options = ", ".join(sorted(choices))
            raise InvalidValueError(
                f"invalid {what} {node.text!r}, expected one of: {options}", node.location
            ) from None

    return convert


def as_list(
    converter: Callable[[DocNode, ConversionContext], T],
) -> Callable[[DocNode, ConversionContext], Tuple[T, ...]]:
    """A sequence of values, or a single scalar read as a one item list."""

    def convert(node: DocNode, ctx: ConversionContext) -> Tuple[T, ...]:
        if node.is_scalar:
            return (converter(node, ctx),)
        out = []
        for index, child in iter_sequence(node):
            with ctx.enter(index):
                out.append(converter(child, ctx))
        return tuple(out)

    return convert


def as_static_tags(node: DocNode, ctx: ConversionContext) -> Mapping[str, str]:
    view = MappingView(node)
    tags: Dict[str, Any] = {}
    for key, child in view.items(ctx):
        with ctx.enter(key):
            name = as_node_name(DocNode(NodeKind.SCALAR, key, child.location, "str"), ctx)
            tags[name] = as_ascii(child, ctx)
    return MappingProxyType(tags)
