"""
proxyconf: converts YAML documents into validated, immutable proxy configuration objects.

- Every node keeps its source location; every failure names its key path.
- Optional subsystems are gated by a process-wide capability set.
- Built objects are frozen; a reload builds a new tree instead of mutating.
"""

from __future__ import annotations

from proxyconf.builders import MappingBuilder, ProxyConfig, build_proxy_config
from proxyconf.capabilities import Capability, CapabilityRegistry, get_capabilities
from proxyconf.context import ConversionContext
from proxyconf.exceptions import (
    ConfigDuplicateError,
    ConfigError,
    ConfigNotFoundError,
    ConfigValidationError,
    ConversionError,
    DocumentParseError,
    DuplicateKeyError,
    InvalidDomainNameError,
    MissingKeyError,
    TypeMismatchError,
    UnknownKeyError,
    UnsupportedFeatureError,
)
from proxyconf.fields import FieldRegistry, FieldSpec
from proxyconf.loader import ConfigLoader, convert, load_proxy_config
from proxyconf.node import DocNode, Location, from_python, load_document, load_file
from proxyconf.value import ConverterProtocol

__all__ = [
    "DocNode",
    "Location",
    "load_document",
    "load_file",
    "from_python",
    "Capability",
    "CapabilityRegistry",
    "get_capabilities",
    "ConversionContext",
    "FieldSpec",
    "FieldRegistry",
    "ConverterProtocol",
    "MappingBuilder",
    "ProxyConfig",
    "build_proxy_config",
    "convert",
    "load_proxy_config",
    "ConfigLoader",
    "ConfigError",
    "ConfigValidationError",
    "ConfigNotFoundError",
    "ConfigDuplicateError",
    "DocumentParseError",
    "ConversionError",
    "TypeMismatchError",
    "DuplicateKeyError",
    "UnknownKeyError",
    "MissingKeyError",
    "InvalidDomainNameError",
    "UnsupportedFeatureError",
]
