from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, Mapping, Optional, Tuple

from proxyconf.context import ConversionContext
from proxyconf.exceptions import DuplicateKeyError
from proxyconf.fields import FieldRegistry, FieldSpec
from proxyconf.node import DocNode, Location, MappingView, NodeKind, iter_sequence
from proxyconf.value.primitive import as_node_name

from .base import FieldValues, MappingBuilder
from .geoip import GeoIpConfig, build_geoip_config
from .histogram import HistogramConfig, build_histogram_config
from .route import RouteTable, build_route_table
from .sched import SchedAffinity, build_sched_affinity
from .server import ServerConfig, build_server_config

__all__ = [
    "RuntimeConfig",
    "ProxyConfig",
    "RuntimeConfigBuilder",
    "ProxyConfigBuilder",
    "build_proxy_config",
]


@dataclass(frozen=True)
class RuntimeConfig:
    cpu_affinity: Optional[SchedAffinity] = None


@dataclass(frozen=True)
class ProxyConfig:
    servers: Tuple[ServerConfig, ...] = ()
    routes: Mapping[str, RouteTable] = field(default_factory=lambda: MappingProxyType({}))
    geoip: Optional[GeoIpConfig] = None
    histogram: Optional[HistogramConfig] = None
    runtime: RuntimeConfig = RuntimeConfig()

    def server(self, name: str) -> ServerConfig:
        for s in self.servers:
            if s.name == name:
                return s
        raise KeyError(name)

    def server_names(self) -> Tuple[str, ...]:
        return tuple(s.name for s in self.servers)


class RuntimeConfigBuilder(MappingBuilder[RuntimeConfig]):
    what = "runtime config"
    fields = FieldRegistry([FieldSpec("cpu_affinity", build_sched_affinity)])

    def finish(self, values: FieldValues, node: DocNode, ctx: ConversionContext) -> RuntimeConfig:
        return RuntimeConfig(cpu_affinity=values["cpu_affinity"])


def _as_servers(node: DocNode, ctx: ConversionContext) -> Tuple[ServerConfig, ...]:
    servers = []
    seen: Dict[str, Location] = {}
    for index, child in iter_sequence(node):
        with ctx.enter(index):
            server = build_server_config(child, ctx)
            if server.name in seen:
                raise DuplicateKeyError(server.name, child.location, first=seen[server.name])
            seen[server.name] = child.location
            servers.append(server)
    return tuple(servers)


def _as_routes(node: DocNode, ctx: ConversionContext) -> Mapping[str, RouteTable]:
    tables: Dict[str, RouteTable] = {}
    for raw_key, child in MappingView(node).items(ctx):
        with ctx.enter(raw_key):
            name = as_node_name(DocNode(NodeKind.SCALAR, raw_key, child.location, "str"), ctx)
            tables[name] = build_route_table(child, ctx)
    return MappingProxyType(tables)


class ProxyConfigBuilder(MappingBuilder[ProxyConfig]):
    what = "proxy config"
    fields = FieldRegistry(
        [
            FieldSpec("servers", _as_servers, default=(), aliases=("server",)),
            FieldSpec("routes", _as_routes, default=MappingProxyType({}), aliases=("route",)),
            FieldSpec("geoip", build_geoip_config, aliases=("geo_ip",)),
            FieldSpec("histogram", build_histogram_config, aliases=("stat",)),
            FieldSpec("runtime", RuntimeConfigBuilder(), default=RuntimeConfig()),
        ]
    )

    def finish(self, values: FieldValues, node: DocNode, ctx: ConversionContext) -> ProxyConfig:
        return ProxyConfig(
            servers=values["servers"],
            routes=values["routes"],
            geoip=values["geoip"],
            histogram=values["histogram"],
            runtime=values["runtime"],
        )


build_proxy_config = ProxyConfigBuilder()
