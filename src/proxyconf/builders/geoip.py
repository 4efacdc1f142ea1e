from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import FrozenSet, Optional
from urllib.parse import SplitResult

from proxyconf.capabilities import Capability
from proxyconf.context import ConversionContext
from proxyconf.exceptions import InvalidValueError
from proxyconf.fields import FieldRegistry, FieldSpec
from proxyconf.node import DocNode
from proxyconf.value.net import as_country_code, as_http_url
from proxyconf.value.primitive import as_choice, as_list, as_str, as_u32

from .base import FieldValues, MappingBuilder

logger = logging.getLogger("proxyconf.builders.geoip")
logger.addHandler(logging.NullHandler())

__all__ = ["GeoIpFormat", "GeoIpConfig", "GeoIpConfigBuilder", "build_geoip_config"]


class GeoIpFormat(str, Enum):
    MMDB = "mmdb"
    CSV = "csv"


@dataclass(frozen=True)
class GeoIpConfig:
    format: GeoIpFormat
    database: Optional[Path] = None
    source: Optional[SplitResult] = None
    countries: FrozenSet[str] = frozenset()
    asns: FrozenSet[int] = frozenset()

    @property
    def location(self) -> str:
        return str(self.database) if self.database is not None else self.source.geturl()  # type: ignore[union-attr]


def _as_database_path(node: DocNode, ctx: ConversionContext) -> Path:
    text = as_str(node, ctx).strip()
    if not text:
        raise InvalidValueError("empty database path", node.location)
    path = ctx.resolve_path(text)
    if not path.is_file():
        raise InvalidValueError(f"geoip database {path} is not a readable file", node.location)
    logger.debug("Using geoip database %s", path)
    return path


_as_countries = as_list(as_country_code)
_as_asns = as_list(as_u32)


class GeoIpConfigBuilder(MappingBuilder[GeoIpConfig]):
    capability = Capability.GEOIP
    what = "geoip config"
    fields = FieldRegistry(
        [
            FieldSpec("database", _as_database_path, aliases=("db", "path")),
            FieldSpec("source", as_http_url, aliases=("url",)),
            FieldSpec(
                "format",
                as_choice({f.value: f for f in GeoIpFormat}, "geoip database format"),
                default=GeoIpFormat.MMDB,
            ),
            FieldSpec("countries", _as_countries, default=(), aliases=("country",)),
            FieldSpec("asns", _as_asns, default=(), aliases=("asn",)),
        ]
    )

    def finish(self, values: FieldValues, node: DocNode, ctx: ConversionContext) -> GeoIpConfig:
        self.exactly_one(values, ("database", "source"), node)
        return GeoIpConfig(
            format=values["format"],
            database=values["database"],
            source=values["source"],
            countries=frozenset(values["countries"]),
            asns=frozenset(values["asns"]),
        )


build_geoip_config = GeoIpConfigBuilder()
