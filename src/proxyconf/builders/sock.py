"""
Per-connection TCP socket settings of a server.

A speed limit is either one size applied to both directions or a mapping::

    tcp_sock_speed_limit: 10M
    tcp_sock_speed_limit: {shift_millis: 8, upload: 1M, download: 4M}

Sizes are bytes per ``2 ** shift_millis`` milliseconds. A zero size means
that direction is not limited.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from proxyconf.context import ConversionContext
from proxyconf.fields import FieldRegistry, FieldSpec
from proxyconf.node import DocNode
from proxyconf.value.humanize import as_size
from proxyconf.value.primitive import as_bool, as_int, as_u32

from .base import FieldValues, MappingBuilder

__all__ = [
    "TcpSockSpeedLimit",
    "TcpMiscSockOpts",
    "build_tcp_sock_speed_limit",
    "build_tcp_misc_sock_opts",
]

DEFAULT_SHIFT_MILLIS = 10
MAX_SHIFT_MILLIS = 12


@dataclass(frozen=True)
class TcpSockSpeedLimit:
    shift_millis: int = DEFAULT_SHIFT_MILLIS
    max_north: int = 0
    max_south: int = 0

    @property
    def is_limited(self) -> bool:
        return self.max_north > 0 or self.max_south > 0


@dataclass(frozen=True)
class TcpMiscSockOpts:
    no_delay: Optional[bool] = None
    max_segment_size: Optional[int] = None
    time_to_live: Optional[int] = None
    type_of_service: Optional[int] = None
    netfilter_mark: Optional[int] = None


def _as_shift_millis(node: DocNode, ctx: ConversionContext) -> int:
    return as_int(node, ctx, minimum=0, maximum=MAX_SHIFT_MILLIS)


def _as_tos(node: DocNode, ctx: ConversionContext) -> int:
    return as_int(node, ctx, minimum=0, maximum=0xFF)


class TcpSockSpeedLimitBuilder(MappingBuilder[TcpSockSpeedLimit]):
    what = "tcp sock speed limit"
    fields = FieldRegistry(
        [
            FieldSpec(
                "shift_millis", _as_shift_millis, default=DEFAULT_SHIFT_MILLIS, aliases=("shift",)
            ),
            FieldSpec(
                "upload", as_size, default=0, aliases=("north", "upload_bytes", "north_bytes")
            ),
            FieldSpec(
                "download",
                as_size,
                default=0,
                aliases=("south", "download_bytes", "south_bytes"),
            ),
        ]
    )

    def build(self, node: DocNode, ctx: ConversionContext) -> TcpSockSpeedLimit:
        if node.is_scalar:
            limit = as_size(node, ctx)
            return TcpSockSpeedLimit(max_north=limit, max_south=limit)
        return super().build(node, ctx)

    def finish(
        self, values: FieldValues, node: DocNode, ctx: ConversionContext
    ) -> TcpSockSpeedLimit:
        return TcpSockSpeedLimit(
            shift_millis=values["shift_millis"],
            max_north=values["upload"],
            max_south=values["download"],
        )


class TcpMiscSockOptsBuilder(MappingBuilder[TcpMiscSockOpts]):
    what = "tcp misc sock opts"
    fields = FieldRegistry(
        [
            FieldSpec("no_delay", as_bool),
            FieldSpec("max_segment_size", as_u32, aliases=("mss",)),
            FieldSpec("time_to_live", as_u32, aliases=("ttl",)),
            FieldSpec("type_of_service", _as_tos, aliases=("tos",)),
            FieldSpec("netfilter_mark", as_u32, aliases=("mark",)),
        ]
    )

    def finish(self, values: FieldValues, node: DocNode, ctx: ConversionContext) -> TcpMiscSockOpts:
        return TcpMiscSockOpts(**values)


build_tcp_sock_speed_limit = TcpSockSpeedLimitBuilder()
build_tcp_misc_sock_opts = TcpMiscSockOptsBuilder()
