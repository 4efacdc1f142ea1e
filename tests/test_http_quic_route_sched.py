import ipaddress
from datetime import timedelta

import pytest

from proxyconf.builders.http import ForwardedHeader, HttpKeepAlive, build_http_config
from proxyconf.builders.quic import build_quic_transport
from proxyconf.builders.route import build_route_table
from proxyconf.builders.sched import SchedAffinity, build_sched_affinity
from proxyconf.capabilities import CapabilityRegistry
from proxyconf.exceptions import (
    DuplicateKeyError,
    InvalidIntegerError,
    InvalidUrlError,
    InvalidValueError,
    MissingKeyError,
    OutOfRangeError,
    UnsupportedFeatureError,
)

# ------------------------------
# HTTP
# ------------------------------


def test_http_defaults(run):
    http = run(build_http_config, "{}")
    assert http.max_header_size == 64 * 1024
    assert http.pipeline_size == 10
    assert http.keepalive == HttpKeepAlive()
    assert http.forwarded_header is ForwardedHeader.NONE
    assert dict(http.custom_headers) == {}
    assert http.upstream_proxy is None


def test_http_full(run):
    http = run(
        build_http_config,
        """
        server_id: edge-1
        max_header_size: 32KiB
        pipeline_size: 64
        keep_alive:
          enabled: true
          idle_expire: 30s
        forwarded_header: standard
        custom_headers:
          X-Proxy: edge
          Via-Node: eu1
        proxy: socks5h://proxy.example.net:1080
        """,
    )
    assert http.server_id == "edge-1"
    assert http.max_header_size == 32 * 1024
    assert http.pipeline_size == 64
    assert http.keepalive.idle_expire == timedelta(seconds=30)
    assert http.forwarded_header is ForwardedHeader.STANDARD
    assert list(http.custom_headers) == ["X-Proxy", "Via-Node"]
    assert http.upstream_proxy.scheme == "socks5h"
    assert http.upstream_proxy.port == 1080


def test_http_keepalive_scalar(run):
    assert run(build_http_config, "keepalive: false\n").keepalive.enable is False


def test_http_errors(run):
    with pytest.raises(OutOfRangeError) as ei:
        run(build_http_config, "pipeline_size: 0\n")
    assert ei.value.path == ("pipeline_size",)
    with pytest.raises(DuplicateKeyError) as ei:
        run(build_http_config, "custom_headers:\n  X-A: one\n  x-a: two\n")
    assert ei.value.path == ("custom_headers", "x-a")
    with pytest.raises(InvalidValueError):
        run(build_http_config, "custom_headers:\n  'bad header': one\n")
    with pytest.raises(InvalidUrlError):
        run(build_http_config, "upstream_proxy: ftp://proxy.example.net\n")
    with pytest.raises(UnsupportedFeatureError):
        run(build_http_config, "{}", capabilities=CapabilityRegistry.none())


# ------------------------------
# QUIC
# ------------------------------


def test_quic_transport(run):
    quic = run(
        build_quic_transport,
        """
        max_idle_timeout: 2m
        keep_alive_interval: 15s
        stream_receive_window: 1MiB
        send_window: 8MiB
        """,
    )
    assert quic.max_idle_timeout == timedelta(minutes=2)
    assert quic.keep_alive_interval == timedelta(seconds=15)
    assert quic.stream_receive_window == 1024 * 1024
    assert quic.receive_window is None
    assert quic.send_window == 8 * 1024 * 1024


def test_quic_keep_alive_must_be_shorter_than_idle(run):
    with pytest.raises(InvalidValueError) as ei:
        run(build_quic_transport, "keep_alive_interval: 60s\n")
    assert ei.value.path == ("keep_alive_interval",)


def test_quic_limits(run):
    with pytest.raises(OutOfRangeError):
        run(build_quic_transport, "receive_window: 4GiB\n")
    with pytest.raises(UnsupportedFeatureError):
        run(build_quic_transport, "{}", capabilities=CapabilityRegistry.of("rustls"))


# ------------------------------
# Routes
# ------------------------------

ROUTES = """
default: direct
rules:
  - next: upstream_eu
    child_match: [eu.example.com]
    subnet_match: 10.1.0.0/16
  - next_hop: upstream_us
    exact: [api.example.com, 192.0.2.1]
    regex: '^cdn[0-9]+\\.'
  - next: direct
    child: corp.internal
"""


def test_route_table(run):
    table = run(build_route_table, ROUTES)
    assert table.default == "direct"
    assert len(table.rules) == 3
    eu, us, _ = table.rules
    assert eu.child_match == ("eu.example.com",)
    assert eu.subnet_match == (ipaddress.ip_network("10.1.0.0/16"),)
    assert us.exact_match == ("api.example.com", ipaddress.ip_address("192.0.2.1"))
    assert us.regex_match[0].match("cdn7.example.com")
    assert table.next_hops() == ("direct", "upstream_eu", "upstream_us")


def test_route_rule_needs_a_matcher(run):
    with pytest.raises(MissingKeyError) as ei:
        run(build_route_table, "default: direct\nrules:\n  - next: other\n")
    assert ei.value.path == ("rules", 0)


def test_route_default_required(run):
    with pytest.raises(MissingKeyError) as ei:
        run(build_route_table, "rules: []\n")
    assert ei.value.key == "default"


def test_route_regex_match_requires_regex_capability(run):
    with pytest.raises(UnsupportedFeatureError) as ei:
        run(build_route_table, ROUTES, capabilities=CapabilityRegistry.of("route"))
    assert ei.value.path == ("rules", 1, "regex")


def test_route_capability(run):
    with pytest.raises(UnsupportedFeatureError) as ei:
        run(build_route_table, "default: direct\n", capabilities=CapabilityRegistry.none())
    assert ei.value.path == ()
    enabled = CapabilityRegistry.of("route")
    assert run(build_route_table, "default: direct\n", capabilities=enabled).default == "direct"


# ------------------------------
# CPU affinity
# ------------------------------


@pytest.mark.parametrize(
    "text, cpus, count",
    [
        ("4", frozenset(), 4),
        ("[0, 2, '4-7']", frozenset({0, 2, 4, 5, 6, 7}), None),
        ("'3'", frozenset({3}), None),
        ("cpus: 0-3", frozenset({0, 1, 2, 3}), None),
        ("cpu_count: 2", frozenset(), 2),
    ],
)
def test_sched_affinity_forms(run, text, cpus, count):
    affinity = run(build_sched_affinity, text)
    assert affinity.cpus == cpus
    assert affinity.count == count
    assert affinity.is_set == bool(cpus)


def test_sched_affinity_errors(run):
    with pytest.raises(InvalidValueError):
        run(build_sched_affinity, "[7-3]")
    with pytest.raises(OutOfRangeError):
        run(build_sched_affinity, "['0-70000']")
    with pytest.raises(InvalidValueError):
        run(build_sched_affinity, "[]")
    with pytest.raises(InvalidValueError):
        run(build_sched_affinity, "cpus: [1]\ncount: 2\n")
    with pytest.raises(OutOfRangeError):
        run(build_sched_affinity, "0")
    with pytest.raises(InvalidIntegerError) as ei:
        run(build_sched_affinity, "[0, x]")
    assert ei.value.path == (1,)
    with pytest.raises(UnsupportedFeatureError):
        run(build_sched_affinity, "4", capabilities=CapabilityRegistry.none())


def test_sched_plain_integer_is_a_count_quoted_is_an_index(run):
    assert run(build_sched_affinity, "4") == SchedAffinity(count=4)
    assert run(build_sched_affinity, "'4'") == SchedAffinity(cpus=frozenset({4}))
    assert run(build_sched_affinity, '"4"').cpus == frozenset({4})
