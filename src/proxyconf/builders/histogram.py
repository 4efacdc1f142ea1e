from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import List, Optional, Tuple, Union

from proxyconf.capabilities import Capability
from proxyconf.context import ConversionContext
from proxyconf.exceptions import InvalidValueError, NonMonotonicBucketsError, OutOfRangeError
from proxyconf.fields import FieldRegistry, FieldSpec
from proxyconf.node import DocNode, iter_sequence
from proxyconf.value.humanize import as_nonzero_duration
from proxyconf.value.primitive import as_float, as_number

from .base import FieldValues, MappingBuilder

__all__ = ["HistogramConfig", "HistogramConfigBuilder", "build_histogram_config"]

Number = Union[int, float]

DEFAULT_ROTATE = timedelta(seconds=4)


@dataclass(frozen=True)
class HistogramConfig:
    buckets: Optional[Tuple[Number, ...]] = None
    quantiles: Optional[Tuple[float, ...]] = None
    rotate: timedelta = DEFAULT_ROTATE

    @property
    def is_bucketed(self) -> bool:
        return self.buckets is not None


def _as_buckets(node: DocNode, ctx: ConversionContext) -> Tuple[Number, ...]:
    bounds: List[Number] = []
    for index, child in iter_sequence(node):
        with ctx.enter(index):
            value = as_number(child, ctx)
            if bounds and value <= bounds[-1]:
                raise NonMonotonicBucketsError(
                    f"bucket boundary {value} does not exceed the previous boundary {bounds[-1]}",
                    child.location,
                )
            bounds.append(value)
    if not bounds:
        raise InvalidValueError("at least one bucket boundary is required", node.location)
    return tuple(bounds)


def _as_quantile(node: DocNode, ctx: ConversionContext) -> float:
    value = as_float(node, ctx)
    if not 0.0 < value <= 1.0:
        raise OutOfRangeError(f"quantile {value} out of range (0, 1]", node.location)
    return value


def _as_quantiles(node: DocNode, ctx: ConversionContext) -> Tuple[float, ...]:
    out: List[float] = []
    for index, child in iter_sequence(node):
        with ctx.enter(index):
            out.append(_as_quantile(child, ctx))
    if not out:
        raise InvalidValueError("at least one quantile is required", node.location)
    return tuple(out)


class HistogramConfigBuilder(MappingBuilder[HistogramConfig]):
    capability = Capability.HISTOGRAM
    what = "histogram config"
    fields = FieldRegistry(
        [
            FieldSpec("buckets", _as_buckets),
            FieldSpec("quantiles", _as_quantiles, aliases=("quantile",)),
            FieldSpec("rotate", as_nonzero_duration, default=DEFAULT_ROTATE),
        ]
    )

    def build(self, node: DocNode, ctx: ConversionContext) -> HistogramConfig:
        if node.is_sequence:
            self.check_capability(node, ctx)
            return HistogramConfig(quantiles=_as_quantiles(node, ctx))
        return super().build(node, ctx)

    def finish(self, values: FieldValues, node: DocNode, ctx: ConversionContext) -> HistogramConfig:
        self.exactly_one(values, ("buckets", "quantiles"), node)
        return HistogramConfig(
            buckets=values["buckets"],
            quantiles=values["quantiles"],
            rotate=values["rotate"],
        )


build_histogram_config = HistogramConfigBuilder()
