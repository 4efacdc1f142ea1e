from __future__ import annotations

from typing import TYPE_CHECKING, Dict, Optional, Sequence, Tuple, Union

if TYPE_CHECKING:
    from proxyconf.node import Location

PathSegment = Union[str, int]


class ConfigError(Exception):
    """Base config exception."""


class ConfigValidationError(ConfigError):
    """Raised when a library-level definition (field, capability name) is invalid."""

    def __init__(
        self, errors: Dict[str, str], key: str | None = None, value: object | None = None
    ) -> None:
        self.errors = errors
        self.key = key
        self.value = value
        msg = f"Validation errors: {errors}"
        if key is not None and value is not None:
            msg += f" (key: {key}, value: {value})"
        super().__init__(msg)


class ConfigNotFoundError(ConfigError):
    """Raised when a requested capability or field name is not registered."""


class ConfigDuplicateError(ConfigError):
    """Raised when attempting to register a duplicate field."""


class DocumentParseError(ConfigError):
    """Raised when the YAML text itself cannot be parsed."""

    def __init__(self, reason: str, location: Optional["Location"] = None) -> None:
        self.reason = reason
        self.location = location
        msg = reason if location is None else f"{reason} (at {location})"
        super().__init__(msg)


class ConversionError(ConfigError):
    """
    A failure while converting a document node into a configuration value.

    The key path is attached by the conversion context on the way out of the
    innermost path segment, so ``str(exc)`` has the shape
    ``<dotted.path>: <reason> (at <location>)``.
    """

    code = "ConversionError"

    def __init__(self, reason: str, location: Optional["Location"] = None) -> None:
        self.reason = reason
        self.location = location
        self.path: Optional[Tuple[PathSegment, ...]] = None
        super().__init__(self._render())

    @property
    def dotted_path(self) -> str:
        return ".".join(str(segment) for segment in self.path or ())

    def attach_path(self, path: Sequence[PathSegment]) -> None:
        # first attach wins: it is the innermost, most precise path
        if self.path is not None:
            return
        self.path = tuple(path)
        self.args = (self._render(),)

    def _render(self) -> str:
        msg = f"{self.dotted_path or '<root>'}: {self.reason}"
        if self.location is not None and self.location.known:
            msg += f" (at {self.location})"
        return msg


class TypeMismatchError(ConversionError):
    code = "TypeMismatch"

    def __init__(self, expected: str, actual: str, location: Optional["Location"] = None) -> None:
        self.expected = expected
        self.actual = actual
        super().__init__(f"expected {expected}, got {actual}", location)


class DuplicateKeyError(ConversionError):
    code = "DuplicateKey"

    def __init__(
        self,
        key: str,
        location: Optional["Location"] = None,
        first: Optional["Location"] = None,
    ) -> None:
        self.key = key
        self.first = first
        reason = f"duplicate key {key!r}"
        if first is not None and first.known:
            reason += f", first defined at {first}"
        super().__init__(reason, location)


class UnknownKeyError(ConversionError):
    code = "UnknownKey"

    def __init__(self, key: str, location: Optional["Location"] = None) -> None:
        self.key = key
        super().__init__(f"unknown key {key!r}", location)


class MissingKeyError(ConversionError):
    code = "MissingKey"

    def __init__(self, key: str, location: Optional["Location"] = None) -> None:
        self.key = key
        super().__init__(f"missing required key {key!r}", location)


class InvalidIntegerError(ConversionError):
    code = "InvalidInteger"


class InvalidBooleanError(ConversionError):
    code = "InvalidBoolean"


class InvalidValueError(ConversionError):
    code = "InvalidValue"


class InvalidDurationError(ConversionError):
    code = "InvalidDuration"


class InvalidDomainNameError(ConversionError):
    code = "InvalidDomainName"


class InvalidUrlError(ConversionError):
    code = "InvalidUrl"


class InvalidRegexError(ConversionError):
    code = "InvalidRegex"


class InvalidSizeError(ConversionError):
    code = "InvalidSize"


class InvalidIpNetworkError(ConversionError):
    code = "InvalidIpNetwork"


class NonMonotonicBucketsError(ConversionError):
    code = "NonMonotonicBuckets"


class OutOfRangeError(ConversionError):
    code = "OutOfRange"


class InvalidCertificateError(ConversionError):
    code = "InvalidCertificate"


class InvalidPrivateKeyError(ConversionError):
    code = "InvalidPrivateKey"


class UnsupportedFeatureError(ConversionError):
    code = "UnsupportedFeature"

    def __init__(
        self,
        capability: str,
        location: Optional["Location"] = None,
        detail: Optional[str] = None,
    ) -> None:
        self.capability = capability
        reason = detail or f"capability {capability!r} is not enabled"
        super().__init__(reason, location)
