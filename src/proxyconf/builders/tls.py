from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import timedelta
from enum import Enum
from typing import Optional, Tuple

from proxyconf.capabilities import Capability
from proxyconf.context import ConversionContext
from proxyconf.exceptions import InvalidPrivateKeyError, UnsupportedFeatureError
from proxyconf.fields import FieldRegistry, FieldSpec, normalize_key
from proxyconf.node import DocNode, MappingView
from proxyconf.value.humanize import as_nonzero_duration
from proxyconf.value.primitive import as_ascii, as_choice, as_list
from proxyconf.value.tls import Certificates, PrivateKey, as_pem_certificates, as_pem_private_key

from .base import FieldValues, MappingBuilder

logger = logging.getLogger("proxyconf.builders.tls")
logger.addHandler(logging.NullHandler())

__all__ = ["TlsBackend", "TlsMaterial", "TlsMaterialBuilder", "build_tls_material"]

DEFAULT_HANDSHAKE_TIMEOUT = timedelta(seconds=10)


class TlsBackend(str, Enum):
    RUSTLS = "rustls"
    OPENSSL = "openssl"

    @property
    def capability(self) -> Capability:
        return Capability(self.value)


# preference order when the document does not name a backend
_BACKEND_PREFERENCE = (TlsBackend.RUSTLS, TlsBackend.OPENSSL)

_as_backend_name = as_choice({b.value: b for b in TlsBackend}, "tls backend")


def _as_backend(node: DocNode, ctx: ConversionContext) -> TlsBackend:
    backend = _as_backend_name(node, ctx)
    ctx.require(
        backend.capability,
        node.location,
        f"tls backend {backend.value!r} is not linked into this build",
    )
    return backend


@dataclass(frozen=True)
class TlsMaterial:
    backend: TlsBackend
    certificate: Certificates
    private_key: PrivateKey = field(repr=False)
    ca_certificate: Optional[Certificates] = None
    alpn_protocols: Tuple[str, ...] = ()
    handshake_timeout: timedelta = DEFAULT_HANDSHAKE_TIMEOUT
    ciphers: Tuple[str, ...] = ()


class TlsMaterialBuilder(MappingBuilder[TlsMaterial]):
    what = "tls material"
    fields = FieldRegistry(
        [
            FieldSpec("backend", _as_backend),
            FieldSpec("certificate", as_pem_certificates, required=True, aliases=("cert",)),
            FieldSpec("private_key", as_pem_private_key, required=True, aliases=("key",)),
            FieldSpec("ca_certificate", as_pem_certificates, aliases=("ca_cert",)),
            FieldSpec("alpn_protocols", as_list(as_ascii), default=(), aliases=("alpn",)),
            FieldSpec("handshake_timeout", as_nonzero_duration, default=DEFAULT_HANDSHAKE_TIMEOUT),
            FieldSpec("ciphers", as_list(as_ascii), default=(), aliases=("cipher_list",)),
        ]
    )

    def build(self, node: DocNode, ctx: ConversionContext) -> TlsMaterial:
        # settle the backend before any certificate or key file is read
        self.check_capability(node, ctx)
        named = False
        for raw_key, child in MappingView(node).items(ctx):
            if normalize_key(raw_key) == "backend":
                named = True
                with ctx.enter(raw_key):
                    _as_backend(child, ctx)
        if not named:
            self._default_backend(node, ctx)
        return super().build(node, ctx)

    def finish(self, values: FieldValues, node: DocNode, ctx: ConversionContext) -> TlsMaterial:
        backend: Optional[TlsBackend] = values["backend"]
        if backend is None:
            backend = self._default_backend(node, ctx)
            logger.debug("No tls backend given, using %s", backend.value)

        if backend is TlsBackend.RUSTLS:
            if values["ciphers"]:
                with values.enter(ctx, "ciphers"):
                    raise UnsupportedFeatureError(
                        Capability.OPENSSL.value,
                        node.location,
                        "an explicit cipher list is only supported by the openssl backend",
                    )
            key: PrivateKey = values["private_key"]
            if key.encrypted:
                with values.enter(ctx, "private_key"):
                    raise InvalidPrivateKeyError(
                        "encrypted private keys are not supported by the rustls backend",
                        node.location,
                    )

        return TlsMaterial(
            backend=backend,
            certificate=values["certificate"],
            private_key=values["private_key"],
            ca_certificate=values["ca_certificate"],
            alpn_protocols=values["alpn_protocols"],
            handshake_timeout=values["handshake_timeout"],
            ciphers=values["ciphers"],
        )

    @staticmethod
    def _default_backend(node: DocNode, ctx: ConversionContext) -> TlsBackend:
        for backend in _BACKEND_PREFERENCE:
            if ctx.has(backend.capability):
                return backend
        raise UnsupportedFeatureError(
            Capability.RUSTLS.value,
            node.location,
            "no tls backend (rustls, openssl) is linked into this build",
        )


build_tls_material = TlsMaterialBuilder()
