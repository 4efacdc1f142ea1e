from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from types import MappingProxyType
from typing import Mapping, Optional

from proxyconf.context import ConversionContext
from proxyconf.exceptions import InvalidValueError, MissingKeyError
from proxyconf.fields import FieldRegistry, FieldSpec, normalize_key
from proxyconf.node import DocNode
from proxyconf.value.humanize import as_duration, as_nonzero_duration, as_size
from proxyconf.value.primitive import as_ascii, as_bool, as_int, as_node_name, as_static_tags

from .acl import AclRuleSet, build_acl_rule_set
from .base import FieldValues, MappingBuilder
from .dpi import DpiPolicy, build_dpi_policy
from .endpoint import SocketAddress, build_socket_address
from .http import HttpConfig, build_http_config
from .quic import QuicTransportConfig, build_quic_transport
from .sched import SchedAffinity, build_sched_affinity
from .sock import (
    TcpMiscSockOpts,
    TcpSockSpeedLimit,
    build_tcp_misc_sock_opts,
    build_tcp_sock_speed_limit,
)
from .tls import TlsMaterial, build_tls_material

__all__ = [
    "IDLE_CHECK_MAXIMUM_DURATION",
    "ServerConfig",
    "ServerConfigBuilder",
    "build_server_config",
]

IDLE_CHECK_MAXIMUM_DURATION = timedelta(minutes=30)
DEFAULT_IDLE_CHECK_DURATION = timedelta(seconds=60)
DEFAULT_ACCEPT_TIMEOUT = timedelta(seconds=60)

# server types that forward through an escaper and cannot run without one
ESCAPER_SERVER_TYPES = frozenset(
    {
        "tcp_tproxy",
        "tcp_stream",
        "tls_stream",
        "http_proxy",
        "socks_proxy",
        "http_rproxy",
        "sni_proxy",
    }
)


@dataclass(frozen=True)
class ServerConfig:
    name: str
    type: Optional[str] = None
    escaper: Optional[str] = None
    auditor: Optional[str] = None
    listen: Optional[SocketAddress] = None
    listen_in_worker: bool = False
    tls: Optional[TlsMaterial] = None
    ingress_network_filter: Optional[AclRuleSet] = None
    inspect_policy: Optional[DpiPolicy] = None
    http: Optional[HttpConfig] = None
    quic: Optional[QuicTransportConfig] = None
    cpu_affinity: Optional[SchedAffinity] = None
    accept_timeout: timedelta = DEFAULT_ACCEPT_TIMEOUT
    task_idle_check_duration: timedelta = DEFAULT_IDLE_CHECK_DURATION
    task_idle_max_count: int = 1
    tcp_copy_buffer_size: Optional[int] = None
    tcp_copy_yield_size: Optional[int] = None
    tcp_sock_speed_limit: TcpSockSpeedLimit = TcpSockSpeedLimit()
    tcp_misc_opts: TcpMiscSockOpts = TcpMiscSockOpts()
    extra_metrics_tags: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    shared_logger: Optional[str] = None
    task_log_flush_interval: Optional[timedelta] = None
    flush_task_log_on_created: bool = False
    flush_task_log_on_connected: bool = False

    @property
    def idle_timeout(self) -> timedelta:
        """How long a task may stay idle before it is closed."""
        return self.task_idle_check_duration * self.task_idle_max_count


def _as_idle_check_duration(node: DocNode, ctx: ConversionContext) -> timedelta:
    return as_duration(node, ctx, allow_zero=False, maximum=IDLE_CHECK_MAXIMUM_DURATION)


def _as_idle_max_count(node: DocNode, ctx: ConversionContext) -> int:
    return as_int(node, ctx, minimum=1, maximum=0xFFFF_FFFF)


class ServerConfigBuilder(MappingBuilder[ServerConfig]):
    what = "server"
    fields = FieldRegistry(
        [
            FieldSpec("name", as_node_name, required=True),
            FieldSpec("type", as_ascii),
            FieldSpec("escaper", as_node_name),
            FieldSpec("auditor", as_node_name),
            FieldSpec("listen", build_socket_address),
            FieldSpec("listen_in_worker", as_bool, default=False),
            FieldSpec("tls", build_tls_material, aliases=("tls_server",)),
            FieldSpec(
                "ingress_network_filter",
                build_acl_rule_set,
                aliases=("ingress_net_filter",),
            ),
            FieldSpec("inspect_policy", build_dpi_policy),
            FieldSpec("http", build_http_config),
            FieldSpec("quic", build_quic_transport, aliases=("quic_transport",)),
            FieldSpec("cpu_affinity", build_sched_affinity),
            FieldSpec(
                "accept_timeout",
                as_nonzero_duration,
                default=DEFAULT_ACCEPT_TIMEOUT,
                deprecated=("handshake_timeout", "negotiation_timeout"),
            ),
            FieldSpec(
                "task_idle_check_duration",
                _as_idle_check_duration,
                default=DEFAULT_IDLE_CHECK_DURATION,
            ),
            FieldSpec("task_idle_max_count", _as_idle_max_count, default=1),
            FieldSpec("tcp_copy_buffer_size", as_size),
            FieldSpec("tcp_copy_yield_size", as_size),
            FieldSpec(
                "tcp_sock_speed_limit",
                build_tcp_sock_speed_limit,
                default=TcpSockSpeedLimit(),
                deprecated=("tcp_conn_speed_limit", "tcp_conn_limit", "conn_limit"),
            ),
            FieldSpec("tcp_misc_opts", build_tcp_misc_sock_opts, default=TcpMiscSockOpts()),
            FieldSpec("extra_metrics_tags", as_static_tags, default=MappingProxyType({})),
            FieldSpec("shared_logger", as_ascii),
            FieldSpec("task_log_flush_interval", as_nonzero_duration),
            FieldSpec("flush_task_log_on_created", as_bool, default=False),
            FieldSpec("flush_task_log_on_connected", as_bool, default=False),
        ]
    )

    def finish(self, values: FieldValues, node: DocNode, ctx: ConversionContext) -> ServerConfig:
        server_type = values["type"]
        if (
            server_type is not None
            and normalize_key(server_type) in ESCAPER_SERVER_TYPES
            and values["escaper"] is None
        ):
            raise MissingKeyError("escaper", node.location)
        if values["listen_in_worker"] and values["listen"] is None:
            raise MissingKeyError("listen", node.location)
        if values["quic"] is not None and values["tls"] is None:
            with values.enter(ctx, "quic"):
                raise InvalidValueError("quic transport requires a tls section", node.location)
        return ServerConfig(**values)


build_server_config = ServerConfigBuilder()
