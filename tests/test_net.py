import ipaddress

import pytest

from proxyconf.exceptions import InvalidDomainNameError, InvalidIpNetworkError, InvalidUrlError, InvalidValueError
from proxyconf.node import from_python
from proxyconf.value import (
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


@pytest.mark.parametrize(
    "text,expected",
    [
        ("Example.COM", "example.com"),
        ("example.com.", "example.com"),
        ("münchen.example", "xn--mnchen-3ya.example"),
        ("a-b.c", "a-b.c"),
    ],
)
def test_normalize_domain(text, expected):
    assert normalize_domain(text) == expected


@pytest.mark.parametrize("text", ["", ".", "example..com", "-bad.com", "a" * 64 + ".com"])
def test_domain_name_rejects(ctx, text):
    with pytest.raises(InvalidDomainNameError):
        as_domain_name(from_python(text), ctx)


def test_as_host_prefers_ip_literals(ctx):
    assert as_host(from_python("192.0.2.1"), ctx) == ipaddress.ip_address("192.0.2.1")
    assert as_host(from_python("[2001:db8::1]"), ctx) == ipaddress.ip_address("2001:db8::1")
    assert as_host(from_python("WWW.Example.org"), ctx) == "www.example.org"
    with pytest.raises(InvalidDomainNameError):
        as_host(from_python("example..com"), ctx)


def test_ip_address_and_network(ctx):
    assert as_ip_address(from_python("::1"), ctx) == ipaddress.ip_address("::1")
    with pytest.raises(InvalidIpNetworkError):
        as_ip_address(from_python("300.1.1.1"), ctx)
    assert as_ip_network(from_python("10.0.0.0/8"), ctx) == ipaddress.ip_network("10.0.0.0/8")
    assert as_ip_network(from_python("10.1.2.3"), ctx).prefixlen == 32
    with pytest.raises(InvalidIpNetworkError):
        as_ip_network(from_python("10.0.0.1/8"), ctx)


@pytest.mark.parametrize(
    "text,expected",
    [
        ("example.com:443", ("example.com", "443")),
        ("[2001:db8::1]:8080", ("2001:db8::1", "8080")),
        ("10.0.0.1:80", ("10.0.0.1", "80")),
    ],
)
def test_split_host_port(text, expected):
    assert split_host_port(text) == expected


@pytest.mark.parametrize("text", ["example.com", "2001:db8::1", "[::1]80", ":80"])
def test_split_host_port_rejects(text):
    with pytest.raises(ValueError):
        split_host_port(text)


def test_as_url(ctx):
    url = as_url(from_python("https://Example.com:8443/path?q=1"), ctx)
    assert url.scheme == "https" and url.port == 8443 and url.hostname == "example.com"
    assert as_url(from_python("mailto:ops@example.com"), ctx).scheme == "mailto"
    for bad in ("example.com", "http://", "http://example..com/", "http://a.com:99999/"):
        with pytest.raises(InvalidUrlError):
            as_url(from_python(bad), ctx)


def test_constrained_url_schemes(ctx):
    assert as_http_url(from_python("http://example.com/db.mmdb"), ctx).path == "/db.mmdb"
    with pytest.raises(InvalidUrlError):
        as_http_url(from_python("ftp://example.com/"), ctx)
    socks = url_converter("socks5", "socks5h")
    assert socks(from_python("socks5h://127.0.0.1:1080"), ctx).port == 1080
    with pytest.raises(InvalidUrlError):
        socks(from_python("socks5:relative"), ctx)


def test_country_code(ctx):
    assert as_country_code(from_python("de"), ctx) == "DE"
    with pytest.raises(InvalidValueError):
        as_country_code(from_python("DEU"), ctx)
