"""
Network endpoints (``host`` + ``port`` to connect to) and listen addresses.

Both accept a mapping or the compact string forms ``host:port`` and
``[v6]:port``. A listen address may also be a bare port number, which binds
the IPv6 unspecified address.
"""

from __future__ import annotations

import ipaddress
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from proxyconf.capabilities import Capability
from proxyconf.context import ConversionContext
from proxyconf.exceptions import InvalidValueError
from proxyconf.fields import FieldRegistry, FieldSpec
from proxyconf.node import DocNode, NodeKind, expect_scalar
from proxyconf.value.net import Host, IpAddress, as_host, as_ip_address, split_host_port
from proxyconf.value.primitive import as_bool, as_choice, as_nonzero_port, as_port, as_u32

from .base import FieldValues, MappingBuilder

__all__ = [
    "ResolveHint",
    "QueryStrategy",
    "PickStrategy",
    "ResolveStrategy",
    "Endpoint",
    "SocketAddress",
    "ResolveStrategyBuilder",
    "EndpointBuilder",
    "SocketAddressBuilder",
    "build_endpoint",
    "build_socket_address",
]


class ResolveHint(str, Enum):
    EAGER = "eager"
    LAZY = "lazy"


class QueryStrategy(str, Enum):
    IPV4_ONLY = "ipv4_only"
    IPV6_ONLY = "ipv6_only"
    IPV4_FIRST = "ipv4_first"
    IPV6_FIRST = "ipv6_first"


class PickStrategy(str, Enum):
    RANDOM = "random"
    SERIAL = "serial"


@dataclass(frozen=True)
class ResolveStrategy:
    query: QueryStrategy = QueryStrategy.IPV4_FIRST
    pick: PickStrategy = PickStrategy.RANDOM


@dataclass(frozen=True)
class Endpoint:
    host: Host
    port: int
    resolve: Optional[ResolveHint] = None
    resolve_strategy: Optional[ResolveStrategy] = None

    @property
    def is_ip(self) -> bool:
        return not isinstance(self.host, str)

    def __str__(self) -> str:
        if isinstance(self.host, ipaddress.IPv6Address):
            return f"[{self.host}]:{self.port}"
        return f"{self.host}:{self.port}"


@dataclass(frozen=True)
class SocketAddress:
    ip: IpAddress
    port: int
    backlog: Optional[int] = None
    ipv6_only: Optional[bool] = None

    def __str__(self) -> str:
        if self.ip.version == 6:
            return f"[{self.ip}]:{self.port}"
        return f"{self.ip}:{self.port}"


_as_query = as_choice({q.value: q for q in QueryStrategy}, "resolve query strategy")
_as_pick = as_choice({p.value: p for p in PickStrategy}, "resolve pick strategy")
_as_resolve_hint = as_choice({h.value: h for h in ResolveHint}, "resolve hint")


def _scalar_part(text: str, node: DocNode) -> DocNode:
    # components of a compact string share the location of the whole string
    return DocNode(NodeKind.SCALAR, text, node.location, "str")


class ResolveStrategyBuilder(MappingBuilder[ResolveStrategy]):
    capability = Capability.RESOLVE
    what = "resolve strategy"
    fields = FieldRegistry(
        [
            FieldSpec("query", _as_query, default=QueryStrategy.IPV4_FIRST),
            FieldSpec("pick", _as_pick, default=PickStrategy.RANDOM),
        ]
    )

    def build(self, node: DocNode, ctx: ConversionContext) -> ResolveStrategy:
        if node.is_scalar:
            self.check_capability(node, ctx)
            return ResolveStrategy(query=_as_query(node, ctx))
        return super().build(node, ctx)

    def finish(self, values: FieldValues, node: DocNode, ctx: ConversionContext) -> ResolveStrategy:
        return ResolveStrategy(query=values["query"], pick=values["pick"])


class EndpointBuilder(MappingBuilder[Endpoint]):
    what = "endpoint"
    fields = FieldRegistry(
        [
            FieldSpec("host", as_host, required=True, aliases=("address",)),
            FieldSpec("port", as_nonzero_port, required=True),
            FieldSpec("resolve", _as_resolve_hint, capability=Capability.RESOLVE),
            FieldSpec(
                "resolve_strategy",
                ResolveStrategyBuilder(),
                capability=Capability.RESOLVE,
            ),
        ]
    )

    def build(self, node: DocNode, ctx: ConversionContext) -> Endpoint:
        if node.is_scalar:
            text = expect_scalar(node, "endpoint")
            try:
                host, port = split_host_port(text)
            except ValueError as e:
                raise InvalidValueError(str(e), node.location) from e
            return Endpoint(
                host=as_host(_scalar_part(host, node), ctx),
                port=as_nonzero_port(_scalar_part(port, node), ctx),
            )
        return super().build(node, ctx)

    def finish(self, values: FieldValues, node: DocNode, ctx: ConversionContext) -> Endpoint:
        return Endpoint(
            host=values["host"],
            port=values["port"],
            resolve=values["resolve"],
            resolve_strategy=values["resolve_strategy"],
        )


def _parse_listen_text(node: DocNode, ctx: ConversionContext) -> SocketAddress:
    text = expect_scalar(node, "socket address").strip()
    if text.isdigit():
        return SocketAddress(ipaddress.IPv6Address("::"), as_port(node, ctx))
    try:
        host, port = split_host_port(text)
    except ValueError as e:
        raise InvalidValueError(str(e), node.location) from e
    return SocketAddress(
        as_ip_address(_scalar_part(host, node), ctx),
        as_port(_scalar_part(port, node), ctx),
    )


class SocketAddressBuilder(MappingBuilder[SocketAddress]):
    what = "socket address"
    fields = FieldRegistry(
        [
            FieldSpec("address", _parse_listen_text, required=True, aliases=("addr",)),
            FieldSpec("backlog", as_u32),
            FieldSpec("ipv6_only", as_bool),
        ]
    )

    def build(self, node: DocNode, ctx: ConversionContext) -> SocketAddress:
        if node.is_scalar:
            return _parse_listen_text(node, ctx)
        return super().build(node, ctx)

    def finish(self, values: FieldValues, node: DocNode, ctx: ConversionContext) -> SocketAddress:
        addr: SocketAddress = values["address"]
        if values["ipv6_only"] is not None and addr.ip.version != 6:
            raise InvalidValueError("ipv6_only is only valid for an IPv6 listen address", node.location)
        return SocketAddress(addr.ip, addr.port, values["backlog"], values["ipv6_only"])


build_endpoint = EndpointBuilder()
build_socket_address = SocketAddressBuilder()
