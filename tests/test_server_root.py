import logging
from datetime import timedelta

import pytest

from proxyconf.builders.root import build_proxy_config
from proxyconf.builders.server import build_server_config
from proxyconf.builders.sock import TcpMiscSockOpts, TcpSockSpeedLimit
from proxyconf.builders.tls import TlsBackend
from proxyconf.exceptions import (
    DuplicateKeyError,
    InvalidCertificateError,
    InvalidValueError,
    MissingKeyError,
    OutOfRangeError,
    UnknownKeyError,
)

SERVER = """
name: edge
type: http_proxy
escaper: default
listen: "[::]:8443"
tls:
  cert: cert.pem
  key: key.pem
quic_transport:
  max_idle_timeout: 30s
ingress_net_filter:
  - allow: 192.0.2.0/24
http:
  pipeline_size: 20
cpu_affinity: [0, 1]
extra_metrics_tags:
  region: eu
task_idle_check_duration: 5m
task_idle_max_count: 3
tcp_copy_buffer_size: 16KiB
"""


def test_server_full(run, pem_files):
    server = run(build_server_config, SERVER)
    assert server.name == "edge"
    assert server.type == "http_proxy"
    assert str(server.listen) == "[::]:8443"
    assert server.tls.backend is TlsBackend.RUSTLS
    assert server.quic.max_idle_timeout == timedelta(seconds=30)
    assert len(server.ingress_network_filter) == 1
    assert server.http.pipeline_size == 20
    assert server.cpu_affinity.cpus == frozenset({0, 1})
    assert dict(server.extra_metrics_tags) == {"region": "eu"}
    assert server.tcp_copy_buffer_size == 16 * 1024
    assert server.idle_timeout == timedelta(minutes=15)


def test_server_defaults(run):
    server = run(build_server_config, "name: plain\n")
    assert server.listen is None
    assert server.tls is None
    assert server.accept_timeout == timedelta(seconds=60)
    assert server.task_idle_check_duration == timedelta(seconds=60)
    assert server.task_idle_max_count == 1
    assert server.idle_timeout == timedelta(seconds=60)
    assert server.flush_task_log_on_created is False


def test_deprecated_timeout_key_warns(run, caplog):
    caplog.set_level(logging.WARNING, logger="proxyconf.fields")
    server = run(build_server_config, "name: a\nhandshake_timeout: 5s\n")
    assert server.accept_timeout == timedelta(seconds=5)
    assert any("handshake_timeout" in r.getMessage() for r in caplog.records)


def test_deprecated_and_current_key_together_is_duplicate(run):
    with pytest.raises(DuplicateKeyError):
        run(build_server_config, "name: a\naccept_timeout: 5s\nnegotiation_timeout: 6s\n")


def test_idle_check_duration_limit(run):
    assert run(build_server_config, "name: a\ntask_idle_check_duration: 30m\n").task_idle_check_duration == timedelta(
        minutes=30
    )
    with pytest.raises(OutOfRangeError) as ei:
        run(build_server_config, "name: a\ntask_idle_check_duration: 31m\n")
    assert ei.value.path == ("task_idle_check_duration",)


def test_server_cross_checks(run):
    with pytest.raises(MissingKeyError) as ei:
        run(build_server_config, "name: a\nlisten_in_worker: true\n")
    assert ei.value.key == "listen"
    with pytest.raises(InvalidValueError) as ei:
        run(build_server_config, "name: a\nquic_transport: {}\n")
    assert ei.value.path == ("quic_transport",)
    with pytest.raises(MissingKeyError):
        run(build_server_config, "type: http_proxy\n")


def test_escaper_required_for_forwarding_server_types(run):
    with pytest.raises(MissingKeyError) as ei:
        run(build_server_config, "name: a\ntype: tcp_tproxy\n")
    assert ei.value.key == "escaper"
    assert run(build_server_config, "name: a\ntype: TCP-TProxy\nescaper: direct\n").escaper == "direct"
    # a tls offloading server has no escaper
    assert run(build_server_config, "name: a\ntype: openssl_proxy\n").escaper is None


def test_tcp_sock_speed_limit(run):
    server = run(build_server_config, "name: a\n")
    assert server.tcp_sock_speed_limit == TcpSockSpeedLimit()
    assert not server.tcp_sock_speed_limit.is_limited

    limit = run(build_server_config, "name: a\ntcp_sock_speed_limit: 10M\n").tcp_sock_speed_limit
    assert limit == TcpSockSpeedLimit(shift_millis=10, max_north=10_000_000, max_south=10_000_000)

    limit = run(
        build_server_config,
        """
        name: a
        tcp_sock_speed_limit:
          shift: 8
          north: 1Mi
          download_bytes: 4Mi
        """,
    ).tcp_sock_speed_limit
    assert limit == TcpSockSpeedLimit(shift_millis=8, max_north=1 << 20, max_south=4 << 20)

    with pytest.raises(OutOfRangeError) as ei:
        run(build_server_config, "name: a\ntcp_sock_speed_limit: {shift_millis: 13}\n")
    assert ei.value.path == ("tcp_sock_speed_limit", "shift_millis")


@pytest.mark.parametrize("key", ["tcp_conn_speed_limit", "tcp_conn_limit", "conn_limit"])
def test_deprecated_speed_limit_keys_warn(run, caplog, key):
    caplog.set_level(logging.WARNING, logger="proxyconf.fields")
    server = run(build_server_config, f"name: a\n{key}: 1K\n")
    assert server.tcp_sock_speed_limit.max_south == 1000
    assert any(key in r.getMessage() for r in caplog.records)


def test_tcp_misc_opts(run):
    opts = run(
        build_server_config,
        """
        name: a
        tcp_misc_opts:
          no_delay: true
          mss: 1400
          ttl: 64
          tos: 16
          mark: 16
        """,
    ).tcp_misc_opts
    assert opts == TcpMiscSockOpts(
        no_delay=True, max_segment_size=1400, time_to_live=64, type_of_service=16, netfilter_mark=16
    )
    assert run(build_server_config, "name: a\n").tcp_misc_opts == TcpMiscSockOpts()
    with pytest.raises(OutOfRangeError) as ei:
        run(build_server_config, "name: a\ntcp_misc_opts: {type_of_service: 256}\n")
    assert ei.value.path == ("tcp_misc_opts", "type_of_service")


# ------------------------------
# Whole document
# ------------------------------


def test_failure_path_points_at_the_failing_leaf(run, pem_files):
    with pytest.raises(InvalidCertificateError) as ei:
        run(
            build_proxy_config,
            """
            servers:
              - name: a
                tls:
                  cert: missing.pem
                  key: key.pem
            """,
        )
    assert ei.value.path == ("servers", 0, "tls", "cert")
    assert ei.value.dotted_path == "servers.0.tls.cert"
    assert str(ei.value).startswith("servers.0.tls.cert: ")
    assert "line 5" in str(ei.value)


def test_duplicate_key_deep_in_the_tree(run):
    with pytest.raises(DuplicateKeyError) as ei:
        run(
            build_proxy_config,
            """
            servers:
              - name: a
                http:
                  pipeline_size: 4
                  pipeline_size: 8
            """,
        )
    assert ei.value.path == ("servers", 0, "http", "pipeline_size")
    assert ei.value.first is not None


def test_duplicate_server_names(run):
    with pytest.raises(DuplicateKeyError) as ei:
        run(build_proxy_config, "servers:\n  - name: a\n  - name: b\n  - name: a\n")
    assert ei.value.path == ("servers", 2)
    assert ei.value.key == "a"


def test_empty_document_gives_defaults(run):
    config = run(build_proxy_config, "")
    assert config.servers == ()
    assert dict(config.routes) == {}
    assert config.geoip is None
    assert config.histogram is None
    assert config.runtime.cpu_affinity is None


def test_whole_document(run):
    config = run(
        build_proxy_config,
        """
        server:
          - name: a
          - name: b
            listen: 3128
        route:
          main:
            default: direct
            rules:
              - next: upstream
                child_match: example.net
        geo_ip:
          source: https://geo.example.com/country.mmdb
        stat: [0.5, 0.99]
        runtime:
          cpu_affinity: 2
        """,
    )
    assert config.server_names() == ("a", "b")
    assert config.server("b").listen.port == 3128
    with pytest.raises(KeyError):
        config.server("c")
    assert config.routes["main"].next_hops() == ("direct", "upstream")
    assert config.geoip.source.hostname == "geo.example.com"
    assert config.histogram.quantiles == (0.5, 0.99)
    assert config.runtime.cpu_affinity.count == 2


def test_unknown_top_level_key(run):
    with pytest.raises(UnknownKeyError) as ei:
        run(build_proxy_config, "srvers: []\n")
    assert ei.value.path == ("srvers",)
    assert str(ei.value).startswith("srvers: unknown key 'srvers'")
