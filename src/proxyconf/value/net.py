from __future__ import annotations

import ipaddress
import logging
from typing import Callable, FrozenSet, Iterable, Optional, Tuple, Union
from urllib.parse import SplitResult, urlsplit

import idna  # IDNA 2008 with UTS #46 support

from proxyconf.context import ConversionContext
from proxyconf.exceptions import (
    InvalidDomainNameError,
    InvalidIpNetworkError,
    InvalidUrlError,
    InvalidValueError,
)
from proxyconf.node import DocNode

from .primitive import as_str

logger = logging.getLogger("proxyconf.value.net")
logger.addHandler(logging.NullHandler())

IpAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]
IpNetwork = Union[ipaddress.IPv4Network, ipaddress.IPv6Network]
Host = Union[IpAddress, str]

__all__ = [
    "normalize_domain",
    "parse_ip_address",
    "split_host_port",
    "as_domain_name",
    "as_host",
    "as_ip_address",
    "as_ip_network",
    "as_url",
    "as_http_url",
    "url_converter",
    "as_country_code",
]


def normalize_domain(host: str) -> str:
    """
    Normalize a domain name to lowercase ASCII using IDNA 2008 + UTS #46.

    One trailing dot is accepted and dropped. Unlike a lookup key helper this
    never falls back to the raw text: a name IDNA cannot encode is invalid.

    Examples:
        >>> normalize_domain("Example.COM.")
        'example.com'
        >>> normalize_domain("münchen.example")
        'xn--mnchen-3ya.example'
    """
    h = host.strip()
    if h.endswith("."):
        h = h[:-1]
    if not h:
        raise ValueError("empty domain name")
    try:
        return idna.encode(h, uts46=True).decode("ascii")
    except idna.IDNAError as e:
        raise ValueError(f"invalid domain name {host!r}: {e}") from e
    except UnicodeError as e:
        raise ValueError(f"invalid domain name {host!r}: {e}") from e


def parse_ip_address(text: str) -> IpAddress:
    t = text.strip()
    if t.startswith("[") and t.endswith("]"):
        t = t[1:-1]
    return ipaddress.ip_address(t)


def split_host_port(text: str) -> Tuple[str, str]:
    """Split ``host:port`` or ``[v6]:port``; raises ValueError."""
    t = text.strip()
    if t.startswith("["):
        end = t.find("]")
        if end < 0 or t[end + 1 : end + 2] != ":":
            raise ValueError(f"invalid address {text!r}")
        return t[1:end], t[end + 2 :]
    host, sep, port = t.rpartition(":")
    if not sep or not host or ":" in host:
        raise ValueError(f"invalid address {text!r}, expected host:port")
    return host, port


def as_domain_name(node: DocNode, ctx: ConversionContext) -> str:
    text = as_str(node, ctx)
    try:
        return normalize_domain(text)
    except ValueError as e:
        raise InvalidDomainNameError(str(e), node.location) from e


def as_ip_address(node: DocNode, ctx: ConversionContext) -> IpAddress:
    text = as_str(node, ctx)
    try:
        return parse_ip_address(text)
    except ValueError as e:
        raise InvalidIpNetworkError(f"invalid ip address {text!r}", node.location) from e


def as_host(node: DocNode, ctx: ConversionContext) -> Host:
    """An IP literal or a domain name."""
    text = as_str(node, ctx)
    try:
        return parse_ip_address(text)
    except ValueError:
        pass
    try:
        return normalize_domain(text)
    except ValueError as e:
        raise InvalidDomainNameError(str(e), node.location) from e


def as_ip_network(node: DocNode, ctx: ConversionContext) -> IpNetwork:
    """CIDR notation, or a bare address meaning a single host network."""
    text = as_str(node, ctx).strip()
    try:
        return ipaddress.ip_network(text, strict=True)
    except ValueError as e:
        raise InvalidIpNetworkError(f"invalid ip network {text!r}: {e}", node.location) from e


def as_url(
    node: DocNode,
    ctx: ConversionContext,
    *,
    schemes: Optional[Iterable[str]] = None,
) -> SplitResult:
    text = as_str(node, ctx).strip()
    allowed: Optional[FrozenSet[str]] = (
        frozenset(s.lower() for s in schemes) if schemes is not None else None
    )
    try:
        url = urlsplit(text)
    except ValueError as e:
        raise InvalidUrlError(f"invalid url {text!r}: {e}", node.location) from e
    if not url.scheme:
        raise InvalidUrlError(f"invalid url {text!r}: missing scheme", node.location)
    if allowed is not None and url.scheme not in allowed:
        expected = ", ".join(sorted(allowed))
        raise InvalidUrlError(
            f"unsupported url scheme {url.scheme!r}, expected one of: {expected}", node.location
        )
    if url.netloc or text[len(url.scheme) + 1 :].startswith("//"):
        _check_authority(url, text, node)
    elif allowed is not None:
        # every constrained call site wants a network location
        raise InvalidUrlError(f"invalid url {text!r}: missing host", node.location)
    return url


def _check_authority(url: SplitResult, text: str, node: DocNode) -> None:
    if not url.hostname:
        raise InvalidUrlError(f"invalid url {text!r}: missing host", node.location)
    try:
        url.port
    except ValueError as e:
        raise InvalidUrlError(f"invalid url {text!r}: {e}", node.location) from e
    try:
        parse_ip_address(url.hostname)
        return
    except ValueError:
        pass
    try:
        normalize_domain(url.hostname)
    except ValueError as e:
        raise InvalidUrlError(f"invalid url {text!r}: {e}", node.location) from e


def as_http_url(node: DocNode, ctx: ConversionContext) -> SplitResult:
    return as_url(node, ctx, schemes=("http", "https"))


def url_converter(*schemes: str) -> Callable[[DocNode, ConversionContext], SplitResult]:
    def convert(node: DocNode, ctx: ConversionContext) -> SplitResult:
        return as_url(node, ctx, schemes=schemes)

    return convert


def as_country_code(node: DocNode, ctx: ConversionContext) -> str:
    text = as_str(node, ctx).strip()
    if len(text) != 2 or not text.isascii() or not text.isalpha():
        raise InvalidValueError(f"invalid ISO 3166 country code {text!r}", node.location)
    return text.upper()
