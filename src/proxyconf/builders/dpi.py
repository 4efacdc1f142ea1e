from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from types import MappingProxyType
from typing import Dict, Mapping, Optional, Tuple

from proxyconf.capabilities import Capability
from proxyconf.context import ConversionContext
from proxyconf.exceptions import DuplicateKeyError, UnknownKeyError
from proxyconf.fields import FieldRegistry, FieldSpec, normalize_key
from proxyconf.node import DocNode, Location, MappingView
from proxyconf.value.humanize import as_nonzero_duration, as_size
from proxyconf.value.primitive import as_bool, as_int, as_list, as_nonzero_port

from .acl import AclRuleSet, build_acl_rule_set
from .base import FieldValues, MappingBuilder

__all__ = [
    "INSPECTABLE_PROTOCOLS",
    "ProtocolInspection",
    "DpiPolicy",
    "DpiPolicyBuilder",
    "build_dpi_policy",
]

INSPECTABLE_PROTOCOLS = frozenset(
    {
        "http",
        "http2",
        "tls",
        "ssh",
        "smtp",
        "imap",
        "pop3",
        "nntp",
        "ftp",
        "mqtt",
        "stomp",
        "rtsp",
        "rtmp",
        "websocket",
        "bittorrent",
        "nats",
    }
)

DEFAULT_INSPECT_MAX_DEPTH = 4
DEFAULT_DATA_INSPECT_SIZE = 4096
DEFAULT_INSPECT_TIMEOUT = timedelta(seconds=60)


@dataclass(frozen=True)
class ProtocolInspection:
    enabled: bool
    # empty means every port
    ports: Tuple[int, ...] = ()


@dataclass(frozen=True)
class DpiPolicy:
    acl: AclRuleSet
    protocols: Mapping[str, ProtocolInspection] = field(default_factory=lambda: MappingProxyType({}))
    inspect_max_depth: int = DEFAULT_INSPECT_MAX_DEPTH
    data_inspect_size: int = DEFAULT_DATA_INSPECT_SIZE
    inspect_timeout: timedelta = DEFAULT_INSPECT_TIMEOUT
    inspect_unknown: bool = False

    def inspection_for(self, protocol: str) -> Optional[ProtocolInspection]:
        return self.protocols.get(normalize_key(protocol))


_as_ports = as_list(as_nonzero_port)


def _as_protocol_inspection(node: DocNode, ctx: ConversionContext) -> ProtocolInspection:
    if node.is_scalar and node.tag != "int":
        return ProtocolInspection(enabled=as_bool(node, ctx))
    return ProtocolInspection(enabled=True, ports=_as_ports(node, ctx))


def _as_protocols(node: DocNode, ctx: ConversionContext) -> Mapping[str, ProtocolInspection]:
    out: Dict[str, ProtocolInspection] = {}
    seen: Dict[str, Location] = {}
    for raw_key, child in MappingView(node).items(ctx):
        with ctx.enter(raw_key):
            name = normalize_key(raw_key)
            if name not in INSPECTABLE_PROTOCOLS:
                raise UnknownKeyError(raw_key, child.location)
            if name in seen:
                raise DuplicateKeyError(name, child.location, first=seen[name])
            seen[name] = child.location
            out[name] = _as_protocol_inspection(child, ctx)
    return MappingProxyType(out)


def _as_depth(node: DocNode, ctx: ConversionContext) -> int:
    return as_int(node, ctx, minimum=1, maximum=255)


class DpiPolicyBuilder(MappingBuilder[DpiPolicy]):
    capability = Capability.DPI
    what = "dpi policy"
    fields = FieldRegistry(
        [
            FieldSpec("acl", build_acl_rule_set, required=True, aliases=("inspect_acl",)),
            FieldSpec("protocols", _as_protocols, default=MappingProxyType({})),
            FieldSpec("inspect_max_depth", _as_depth, default=DEFAULT_INSPECT_MAX_DEPTH),
            FieldSpec("data_inspect_size", as_size, default=DEFAULT_DATA_INSPECT_SIZE),
            FieldSpec(
                "inspect_timeout",
                as_nonzero_duration,
                default=DEFAULT_INSPECT_TIMEOUT,
                aliases=("protocol_inspect_timeout",),
            ),
            FieldSpec("inspect_unknown", as_bool, default=False),
        ]
    )

    def finish(self, values: FieldValues, node: DocNode, ctx: ConversionContext) -> DpiPolicy:
        return DpiPolicy(
            acl=values["acl"],
            protocols=values["protocols"],
            inspect_max_depth=values["inspect_max_depth"],
            data_inspect_size=values["data_inspect_size"],
            inspect_timeout=values["inspect_timeout"],
            inspect_unknown=values["inspect_unknown"],
        )


build_dpi_policy = DpiPolicyBuilder()
