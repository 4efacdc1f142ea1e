"""
CPU scheduling affinity.

Accepted forms::

    cpu_affinity: 4                 # any 4 CPUs
    cpu_affinity: [0, 2, "4-7"]     # explicit CPU set
    cpu_affinity: {cpus: "0-3"}
    cpu_affinity: {count: 2}

An unquoted integer is a CPU count, while a quoted string (``"4"``,
``"2-5"``) is a CPU index or range.

Indices are not checked against the host topology here; the runtime that
applies the affinity knows the CPU count.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import FrozenSet, Optional, Set

from proxyconf.capabilities import Capability
from proxyconf.context import ConversionContext
from proxyconf.exceptions import InvalidValueError, OutOfRangeError
from proxyconf.fields import FieldRegistry, FieldSpec
from proxyconf.node import DocNode, expect_scalar, iter_sequence
from proxyconf.value.primitive import U16_MAX, as_int

from .base import FieldValues, MappingBuilder

__all__ = ["SchedAffinity", "SchedAffinityBuilder", "build_sched_affinity"]

_RANGE_RE = re.compile(r"^\s*([0-9]+)\s*-\s*([0-9]+)\s*$")
MAX_CPU_INDEX = U16_MAX


@dataclass(frozen=True)
class SchedAffinity:
    cpus: FrozenSet[int] = frozenset()
    count: Optional[int] = None

    @property
    def is_set(self) -> bool:
        return bool(self.cpus)


def _as_cpu_index(node: DocNode, ctx: ConversionContext) -> int:
    return as_int(node, ctx, minimum=0, maximum=MAX_CPU_INDEX)


def _as_count(node: DocNode, ctx: ConversionContext) -> int:
    return as_int(node, ctx, minimum=1, maximum=MAX_CPU_INDEX + 1)


def _add_item(node: DocNode, ctx: ConversionContext, out: Set[int]) -> None:
    text = expect_scalar(node, "cpu index or range")
    m = _RANGE_RE.match(text)
    if m is None:
        out.add(_as_cpu_index(node, ctx))
        return
    lo, hi = int(m.group(1)), int(m.group(2))
    if lo > hi:
        raise InvalidValueError(f"invalid cpu range {text!r}", node.location)
    if hi > MAX_CPU_INDEX:
        raise OutOfRangeError(f"cpu index {hi} out of range [0, {MAX_CPU_INDEX}]", node.location)
    out.update(range(lo, hi + 1))


def _as_cpu_set(node: DocNode, ctx: ConversionContext) -> FrozenSet[int]:
    out: Set[int] = set()
    if node.is_scalar:
        _add_item(node, ctx, out)
    else:
        for index, child in iter_sequence(node):
            with ctx.enter(index):
                _add_item(child, ctx, out)
    if not out:
        raise InvalidValueError("empty cpu set", node.location)
    return frozenset(out)


class SchedAffinityBuilder(MappingBuilder[SchedAffinity]):
    capability = Capability.SCHED
    what = "cpu affinity"
    fields = FieldRegistry(
        [
            FieldSpec("cpus", _as_cpu_set, aliases=("cpu_set", "cpu_list")),
            FieldSpec("count", _as_count, aliases=("cpu_count",)),
        ]
    )

    def build(self, node: DocNode, ctx: ConversionContext) -> SchedAffinity:
        if node.is_mapping:
            return super().build(node, ctx)
        self.check_capability(node, ctx)
        if node.is_scalar and node.tag == "int":
            return SchedAffinity(count=_as_count(node, ctx))
        return SchedAffinity(cpus=_as_cpu_set(node, ctx))

    def finish(self, values: FieldValues, node: DocNode, ctx: ConversionContext) -> SchedAffinity:
        key, value = self.exactly_one(values, ("cpus", "count"), node)
        if key == "cpus":
            return SchedAffinity(cpus=value)
        return SchedAffinity(count=value)


build_sched_affinity = SchedAffinityBuilder()
