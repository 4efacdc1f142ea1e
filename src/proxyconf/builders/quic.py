from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from proxyconf.capabilities import Capability
from proxyconf.context import ConversionContext
from proxyconf.exceptions import InvalidValueError
from proxyconf.fields import FieldRegistry, FieldSpec
from proxyconf.node import DocNode
from proxyconf.value.humanize import as_nonzero_duration, as_size_u32

from .base import FieldValues, MappingBuilder

__all__ = ["QuicTransportConfig", "QuicTransportConfigBuilder", "build_quic_transport"]

DEFAULT_MAX_IDLE_TIMEOUT = timedelta(seconds=60)


@dataclass(frozen=True)
class QuicTransportConfig:
    max_idle_timeout: timedelta = DEFAULT_MAX_IDLE_TIMEOUT
    keep_alive_interval: Optional[timedelta] = None
    stream_receive_window: Optional[int] = None
    receive_window: Optional[int] = None
    send_window: Optional[int] = None


class QuicTransportConfigBuilder(MappingBuilder[QuicTransportConfig]):
    capability = Capability.QUINN
    what = "quic transport config"
    fields = FieldRegistry(
        [
            FieldSpec("max_idle_timeout", as_nonzero_duration, default=DEFAULT_MAX_IDLE_TIMEOUT),
            FieldSpec("keep_alive_interval", as_nonzero_duration),
            FieldSpec("stream_receive_window", as_size_u32),
            FieldSpec("receive_window", as_size_u32),
            FieldSpec("send_window", as_size_u32),
        ]
    )

    def finish(
        self, values: FieldValues, node: DocNode, ctx: ConversionContext
    ) -> QuicTransportConfig:
        keep_alive: Optional[timedelta] = values["keep_alive_interval"]
        idle: timedelta = values["max_idle_timeout"]
        if keep_alive is not None and keep_alive >= idle:
            with values.enter(ctx, "keep_alive_interval"):
                raise InvalidValueError(
                    f"keep_alive_interval {keep_alive} must be shorter than max_idle_timeout {idle}",
                    node.location,
                )
        return QuicTransportConfig(
            max_idle_timeout=idle,
            keep_alive_interval=keep_alive,
            stream_receive_window=values["stream_receive_window"],
            receive_window=values["receive_window"],
            send_window=values["send_window"],
        )


build_quic_transport = QuicTransportConfigBuilder()
