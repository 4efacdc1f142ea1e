from __future__ import annotations

from .acl import AclAction, AclMatcher, AclRule, AclRuleSet, MatcherKind, build_acl_rule_set
from .base import FieldValues, MappingBuilder
from .dpi import DpiPolicy, ProtocolInspection, build_dpi_policy
from .endpoint import (
    Endpoint,
    PickStrategy,
    QueryStrategy,
    ResolveHint,
    ResolveStrategy,
    SocketAddress,
    build_endpoint,
    build_socket_address,
)
from .geoip import GeoIpConfig, GeoIpFormat, build_geoip_config
from .histogram import HistogramConfig, build_histogram_config
from .http import ForwardedHeader, HttpConfig, HttpKeepAlive, build_http_config
from .quic import QuicTransportConfig, build_quic_transport
from .root import ProxyConfig, RuntimeConfig, build_proxy_config
from .route import RouteEntry, RouteTable, build_route_table
from .sched import SchedAffinity, build_sched_affinity
from .server import ServerConfig, build_server_config
from .sock import (
    TcpMiscSockOpts,
    TcpSockSpeedLimit,
    build_tcp_misc_sock_opts,
    build_tcp_sock_speed_limit,
)
from .tls import TlsBackend, TlsMaterial, build_tls_material

__all__ = [
    "MappingBuilder",
    "FieldValues",
    "Endpoint",
    "ResolveHint",
    "QueryStrategy",
    "PickStrategy",
    "ResolveStrategy",
    "SocketAddress",
    "build_endpoint",
    "build_socket_address",
    "TlsBackend",
    "TlsMaterial",
    "build_tls_material",
    "AclAction",
    "MatcherKind",
    "AclMatcher",
    "AclRule",
    "AclRuleSet",
    "build_acl_rule_set",
    "ProtocolInspection",
    "DpiPolicy",
    "build_dpi_policy",
    "GeoIpFormat",
    "GeoIpConfig",
    "build_geoip_config",
    "HistogramConfig",
    "build_histogram_config",
    "ForwardedHeader",
    "HttpKeepAlive",
    "HttpConfig",
    "build_http_config",
    "QuicTransportConfig",
    "build_quic_transport",
    "RouteEntry",
    "RouteTable",
    "build_route_table",
    "SchedAffinity",
    "build_sched_affinity",
    "TcpSockSpeedLimit",
    "TcpMiscSockOpts",
    "build_tcp_sock_speed_limit",
    "build_tcp_misc_sock_opts",
    "ServerConfig",
    "build_server_config",
    "RuntimeConfig",
    "ProxyConfig",
    "build_proxy_config",
]
