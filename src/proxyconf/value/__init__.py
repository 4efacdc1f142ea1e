from __future__ import annotations

from .humanize import (
    as_duration,
    as_nonzero_duration,
    as_size,
    as_size_u32,
    parse_duration,
    parse_size,
)
from .net import (
    as_country_code,
    as_domain_name,
    as_host,
    as_http_url,
    as_ip_address,
    as_ip_network,
    as_url,
    normalize_domain,
    split_host_port,
    url_converter,
)
from .primitive import (
    as_ascii,
    as_bool,
    as_choice,
    as_float,
    as_int,
    as_list,
    as_node_name,
    as_nonzero_port,
    as_number,
    as_port,
    as_static_tags,
    as_str,
    as_u16,
    as_u32,
    as_usize,
)
from .protocol import ConverterProtocol
from .regex import as_regex
from .tls import Certificates, PemKind, PemSource, PrivateKey, as_pem_certificates, as_pem_private_key

__all__ = [
    "ConverterProtocol",
    "as_int",
    "as_u16",
    "as_u32",
    "as_usize",
    "as_port",
    "as_nonzero_port",
    "as_float",
    "as_number",
    "as_bool",
    "as_str",
    "as_ascii",
    "as_node_name",
    "as_choice",
    "as_list",
    "as_static_tags",
    "parse_duration",
    "parse_size",
    "as_duration",
    "as_nonzero_duration",
    "as_size",
    "as_size_u32",
    "normalize_domain",
    "split_host_port",
    "as_domain_name",
    "as_host",
    "as_ip_address",
    "as_ip_network",
    "as_url",
    "as_http_url",
    "url_converter",
    "as_country_code",
    "as_regex",
    "PemKind",
    "PemSource",
    "Certificates",
    "PrivateKey",
    "as_pem_certificates",
    "as_pem_private_key",
]
