import ipaddress

import pytest

from proxyconf.builders.endpoint import (
    Endpoint,
    PickStrategy,
    QueryStrategy,
    ResolveHint,
    build_endpoint,
    build_socket_address,
)
from proxyconf.capabilities import CapabilityRegistry
from proxyconf.exceptions import (
    DuplicateKeyError,
    InvalidDomainNameError,
    InvalidValueError,
    MissingKeyError,
    OutOfRangeError,
    UnknownKeyError,
    UnsupportedFeatureError,
)


def test_endpoint_mapping(run):
    ep = run(build_endpoint, "host: Example.COM\nport: 443\n")
    assert ep == Endpoint(host="example.com", port=443)
    assert str(ep) == "example.com:443"
    assert not ep.is_ip


def test_malformed_label_reports_exact_path(run):
    with pytest.raises(InvalidDomainNameError) as ei:
        run(build_endpoint, 'host: "example..com"\nport: 443\n')
    assert ei.value.code == "InvalidDomainName"
    assert ei.value.path == ("host",)
    assert str(ei.value).startswith("host: ")


def test_endpoint_string_forms(run):
    ep = run(build_endpoint, '"[2001:db8::1]:8443"')
    assert ep.host == ipaddress.ip_address("2001:db8::1")
    assert str(ep) == "[2001:db8::1]:8443"
    assert run(build_endpoint, "proxy.example.net:3128").port == 3128
    with pytest.raises(InvalidValueError):
        run(build_endpoint, "proxy.example.net")
    with pytest.raises(OutOfRangeError):
        run(build_endpoint, "proxy.example.net:0")


def test_endpoint_key_errors(run):
    with pytest.raises(MissingKeyError) as ei:
        run(build_endpoint, "host: a.example\n")
    assert ei.value.key == "port"
    assert ei.value.path == ()
    with pytest.raises(UnknownKeyError) as ei:
        run(build_endpoint, "host: a.example\nport: 1\nprot: 2\n")
    assert ei.value.path == ("prot",)
    with pytest.raises(DuplicateKeyError) as ei:
        run(build_endpoint, "host: a.example\naddress: b.example\nport: 1\n")
    assert ei.value.path == ("address",)


def test_resolve_hints(run):
    ep = run(
        build_endpoint,
        """
        host: a.example
        port: 80
        resolve: lazy
        resolve_strategy:
          query: ipv6_first
          pick: serial
        """,
    )
    assert ep.resolve is ResolveHint.LAZY
    assert ep.resolve_strategy.query is QueryStrategy.IPV6_FIRST
    assert ep.resolve_strategy.pick is PickStrategy.SERIAL

    short = run(build_endpoint, "host: a.example\nport: 80\nresolve_strategy: ipv4_only\n")
    assert short.resolve_strategy.query is QueryStrategy.IPV4_ONLY
    assert short.resolve_strategy.pick is PickStrategy.RANDOM


def test_resolve_hint_requires_capability(run):
    with pytest.raises(UnsupportedFeatureError) as ei:
        run(
            build_endpoint,
            "host: a.example\nport: 80\nresolve: eager\n",
            capabilities=CapabilityRegistry.none(),
        )
    assert ei.value.path == ("resolve",)


def test_socket_address_forms(run):
    assert str(run(build_socket_address, "8080")) == "[::]:8080"
    assert str(run(build_socket_address, "0.0.0.0:0")) == "0.0.0.0:0"
    listen = run(build_socket_address, 'address: "[::]:443"\nbacklog: 1024\nipv6_only: true\n')
    assert listen.backlog == 1024 and listen.ipv6_only is True
    with pytest.raises(InvalidValueError):
        run(build_socket_address, "address: 127.0.0.1:80\nipv6_only: false\n")
    with pytest.raises(OutOfRangeError):
        run(build_socket_address, "70000")
