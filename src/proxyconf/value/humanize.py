"""
Human friendly durations (``90s``, ``2h30m``) and sizes (``64KiB``, ``1.5M``).

Bare numbers are seconds for durations and bytes for sizes. Decimal size
units (K, M, G, T, P) scale by powers of 1000, binary ones (Ki, Mi, ...) by
powers of 1024; a trailing ``B`` is optional in both cases.
"""

from __future__ import annotations

import re
from datetime import timedelta
from decimal import Decimal, InvalidOperation
from typing import Dict, Optional

from proxyconf.context import ConversionContext
from proxyconf.exceptions import InvalidDurationError, InvalidSizeError, OutOfRangeError
from proxyconf.node import DocNode, expect_scalar

from .primitive import U32_MAX, USIZE_MAX

__all__ = [
    "parse_duration",
    "parse_size",
    "as_duration",
    "as_nonzero_duration",
    "as_size",
    "as_size_u32",
]

_NS_PER_UNIT: Dict[str, int] = {
    "ns": 1,
    "nsec": 1,
    "us": 1_000,
    "µs": 1_000,
    "usec": 1_000,
    "ms": 1_000_000,
    "msec": 1_000_000,
    "s": 1_000_000_000,
    "sec": 1_000_000_000,
    "secs": 1_000_000_000,
    "second": 1_000_000_000,
    "seconds": 1_000_000_000,
    "m": 60_000_000_000,
    "min": 60_000_000_000,
    "mins": 60_000_000_000,
    "minute": 60_000_000_000,
    "minutes": 60_000_000_000,
    "h": 3_600_000_000_000,
    "hr": 3_600_000_000_000,
    "hour": 3_600_000_000_000,
    "hours": 3_600_000_000_000,
    "d": 86_400_000_000_000,
    "day": 86_400_000_000_000,
    "days": 86_400_000_000_000,
    "w": 604_800_000_000_000,
    "week": 604_800_000_000_000,
    "weeks": 604_800_000_000_000,
}

_PLAIN_NUMBER_RE = re.compile(r"^[+-]?(?:[0-9]+(?:\.[0-9]*)?|\.[0-9]+)$")
_DURATION_FULL_RE = re.compile(r"^(?:[0-9]+(?:\.[0-9]+)?\s*[a-zµ]+\s*)+$", re.IGNORECASE)
_DURATION_PART_RE = re.compile(r"([0-9]+(?:\.[0-9]+)?)\s*([a-zµ]+)", re.IGNORECASE)

_SIZE_RE = re.compile(r"^([0-9]+(?:\.[0-9]+)?)\s*(?:([kmgtp])(i)?)?b?$", re.IGNORECASE)
_SIZE_POWER = {"k": 1, "m": 2, "g": 3, "t": 4, "p": 5}


def parse_duration(text: str) -> timedelta:
    """
    Parse a duration; raises ValueError with a human readable reason.

    Values beyond what ``timedelta`` can hold raise OverflowError.
    """
    s = text.strip()
    if not s:
        raise ValueError("empty duration")
    if s.startswith("-"):
        raise ValueError(f"negative duration {text!r} is not permitted")
    if _PLAIN_NUMBER_RE.match(s):
        return timedelta(seconds=float(s))
    if not _DURATION_FULL_RE.match(s):
        raise ValueError(f"invalid duration {text!r}")

    total_ns = Decimal(0)
    for magnitude, unit in _DURATION_PART_RE.findall(s):
        ns = _NS_PER_UNIT.get(unit.lower())
        if ns is None:
            raise ValueError(f"unknown duration unit {unit!r} in {text!r}")
        total_ns += Decimal(magnitude) * ns
    return timedelta(microseconds=float(total_ns / 1000))


def parse_size(text: str) -> int:
    """Parse a size into a byte count; raises ValueError with a reason."""
    s = text.strip()
    m = _SIZE_RE.match(s)
    if not m:
        raise ValueError(f"invalid size {text!r}")
    magnitude, prefix, binary = m.groups()
    try:
        value = Decimal(magnitude)
    except InvalidOperation as e:  # pragma: no cover - regex guarantees a number
        raise ValueError(f"invalid size {text!r}") from e
    if prefix:
        base = 1024 if binary else 1000
        value *= base ** _SIZE_POWER[prefix.lower()]
    if value != value.to_integral_value():
        raise ValueError(f"size {text!r} is not a whole number of bytes")
    return int(value)


def as_duration(
    node: DocNode,
    ctx: ConversionContext,
    *,
    allow_zero: bool = True,
    maximum: Optional[timedelta] = None,
) -> timedelta:
    text = expect_scalar(node, "duration")
    try:
        value = parse_duration(text)
    except ValueError as e:
        raise InvalidDurationError(str(e), node.location) from e
    except OverflowError as e:
        raise OutOfRangeError(f"duration {text!r} is too large", node.location) from e
    if not allow_zero and value == timedelta(0):
        raise InvalidDurationError("zero duration is not allowed", node.location)
    if maximum is not None and value > maximum:
        raise OutOfRangeError(f"duration {text!r} exceeds maximum {maximum}", node.location)
    return value


def as_nonzero_duration(node: DocNode, ctx: ConversionContext) -> timedelta:
    return as_duration(node, ctx, allow_zero=False)


def as_size(
    node: DocNode,
    ctx: ConversionContext,
    *,
    minimum: int = 0,
    maximum: int = USIZE_MAX,
) -> int:
    text = expect_scalar(node, "size")
    try:
        value = parse_size(text)
    except ValueError as e:
        raise InvalidSizeError(str(e), node.location) from e
    if value < minimum or value > maximum:
        raise OutOfRangeError(
            f"size {text!r} ({value} bytes) out of range [{minimum}, {maximum}]", node.location
        )
    return value


def as_size_u32(node: DocNode, ctx: ConversionContext) -> int:
    return as_size(node, ctx, maximum=U32_MAX)
