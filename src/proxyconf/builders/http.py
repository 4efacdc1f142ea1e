from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import timedelta
from enum import Enum
from types import MappingProxyType
from typing import Dict, Mapping, Optional
from urllib.parse import SplitResult

from proxyconf.capabilities import Capability
from proxyconf.context import ConversionContext
from proxyconf.exceptions import DuplicateKeyError, InvalidValueError
from proxyconf.fields import FieldRegistry, FieldSpec
from proxyconf.node import DocNode, Location, MappingView
from proxyconf.value.humanize import as_duration, as_size
from proxyconf.value.net import url_converter
from proxyconf.value.primitive import as_ascii, as_bool, as_choice, as_int

from .base import FieldValues, MappingBuilder

__all__ = [
    "ForwardedHeader",
    "HttpKeepAlive",
    "HttpConfig",
    "HttpKeepAliveBuilder",
    "HttpConfigBuilder",
    "build_http_config",
]

DEFAULT_MAX_HEADER_SIZE = 64 * 1024
DEFAULT_PIPELINE_SIZE = 10
DEFAULT_IDLE_EXPIRE = timedelta(seconds=60)

# RFC 7230 section 3.2.6
_TOKEN_RE = re.compile(r"^[!#$%&'*+\-.^_`|~0-9A-Za-z]+$")


class ForwardedHeader(str, Enum):
    NONE = "none"
    CLASSIC = "classic"
    STANDARD = "standard"


@dataclass(frozen=True)
class HttpKeepAlive:
    enable: bool = True
    idle_expire: timedelta = DEFAULT_IDLE_EXPIRE


@dataclass(frozen=True)
class HttpConfig:
    server_id: Optional[str] = None
    max_header_size: int = DEFAULT_MAX_HEADER_SIZE
    pipeline_size: int = DEFAULT_PIPELINE_SIZE
    keepalive: HttpKeepAlive = HttpKeepAlive()
    forwarded_header: ForwardedHeader = ForwardedHeader.NONE
    custom_headers: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    upstream_proxy: Optional[SplitResult] = None


class HttpKeepAliveBuilder(MappingBuilder[HttpKeepAlive]):
    what = "http keepalive"
    fields = FieldRegistry(
        [
            FieldSpec("enable", as_bool, default=True, aliases=("enabled",)),
            FieldSpec("idle_expire", as_duration, default=DEFAULT_IDLE_EXPIRE),
        ]
    )

    def build(self, node: DocNode, ctx: ConversionContext) -> HttpKeepAlive:
        if node.is_scalar:
            return HttpKeepAlive(enable=as_bool(node, ctx))
        return super().build(node, ctx)

    def finish(self, values: FieldValues, node: DocNode, ctx: ConversionContext) -> HttpKeepAlive:
        return HttpKeepAlive(enable=values["enable"], idle_expire=values["idle_expire"])


def _as_pipeline_size(node: DocNode, ctx: ConversionContext) -> int:
    return as_int(node, ctx, minimum=1, maximum=1024)


def _as_custom_headers(node: DocNode, ctx: ConversionContext) -> Mapping[str, str]:
    headers: Dict[str, str] = {}
    seen: Dict[str, Location] = {}
    for name, child in MappingView(node).items(ctx):
        with ctx.enter(name):
            if not _TOKEN_RE.match(name):
                raise InvalidValueError(f"invalid http header name {name!r}", child.location)
            # header names are case-insensitive
            lowered = name.lower()
            if lowered in seen:
                raise DuplicateKeyError(name, child.location, first=seen[lowered])
            seen[lowered] = child.location
            headers[name] = as_ascii(child, ctx)
    return MappingProxyType(headers)


class HttpConfigBuilder(MappingBuilder[HttpConfig]):
    capability = Capability.HTTP
    what = "http config"
    fields = FieldRegistry(
        [
            FieldSpec("server_id", as_ascii),
            FieldSpec("max_header_size", as_size, default=DEFAULT_MAX_HEADER_SIZE),
            FieldSpec("pipeline_size", _as_pipeline_size, default=DEFAULT_PIPELINE_SIZE),
            FieldSpec("keepalive", HttpKeepAliveBuilder(), default=HttpKeepAlive(), aliases=("keep_alive",)),
            FieldSpec(
                "forwarded_header",
                as_choice({f.value: f for f in ForwardedHeader}, "forwarded header type"),
                default=ForwardedHeader.NONE,
            ),
            FieldSpec("custom_headers", _as_custom_headers, default=MappingProxyType({})),
            FieldSpec(
                "upstream_proxy",
                url_converter("http", "https", "socks5", "socks5h"),
                aliases=("proxy",),
            ),
        ]
    )

    def finish(self, values: FieldValues, node: DocNode, ctx: ConversionContext) -> HttpConfig:
        return HttpConfig(
            server_id=values["server_id"],
            max_header_size=values["max_header_size"],
            pipeline_size=values["pipeline_size"],
            keepalive=values["keepalive"],
            forwarded_header=values["forwarded_header"],
            custom_headers=values["custom_headers"],
            upstream_proxy=values["upstream_proxy"],
        )


build_http_config = HttpConfigBuilder()
