import base64
import textwrap

import pytest

from proxyconf.capabilities import CAPABILITIES_ENV, CapabilityRegistry, get_capabilities
from proxyconf.context import ConversionContext
from proxyconf.loader import convert
from proxyconf.node import load_document


def der_sequence(size: int = 8) -> bytes:
    """A syntactically valid DER SEQUENCE with ``size`` content bytes."""
    body = b"\x01" * size
    if size < 0x80:
        return b"\x30" + bytes([size]) + body
    length = size.to_bytes((size.bit_length() + 7) // 8, "big")
    return b"\x30" + bytes([0x80 | len(length)]) + length + body


def make_pem(label: str, der: bytes = b"", headers: str = "") -> str:
    der = der or der_sequence()
    b64 = base64.b64encode(der).decode("ascii")
    lines = [b64[i : i + 64] for i in range(0, len(b64), 64)]
    head = f"{headers}\n\n" if headers else ""
    return f"-----BEGIN {label}-----\n{head}" + "\n".join(lines) + f"\n-----END {label}-----\n"


@pytest.fixture(autouse=True)
def reset_process_capabilities(monkeypatch):
    monkeypatch.delenv(CAPABILITIES_ENV, raising=False)
    get_capabilities.cache_clear()
    yield
    get_capabilities.cache_clear()


@pytest.fixture
def all_caps():
    return CapabilityRegistry.all()


@pytest.fixture
def ctx(all_caps, tmp_path):
    return ConversionContext(all_caps, lookup_dir=tmp_path)


@pytest.fixture
def node():
    """Parse dedented YAML text into a document node."""

    def _node(text: str):
        return load_document(textwrap.dedent(text))

    return _node


@pytest.fixture
def run(all_caps, tmp_path):
    """Convert YAML text with a builder, all capabilities enabled unless given."""

    def _run(builder, text: str, capabilities=None):
        doc = load_document(textwrap.dedent(text))
        caps = all_caps if capabilities is None else capabilities
        return convert(doc, builder, capabilities=caps, lookup_dir=tmp_path)

    return _run


@pytest.fixture
def cert_pem():
    return make_pem("CERTIFICATE", der_sequence(40))


@pytest.fixture
def key_pem():
    return make_pem("PRIVATE KEY", der_sequence(20))


@pytest.fixture
def pem_files(tmp_path, cert_pem, key_pem):
    """Write cert.pem, key.pem and ca.pem into the lookup directory."""
    (tmp_path / "cert.pem").write_text(cert_pem)
    (tmp_path / "key.pem").write_text(key_pem)
    (tmp_path / "ca.pem").write_text(cert_pem + make_pem("CERTIFICATE", der_sequence(200)))
    return tmp_path
