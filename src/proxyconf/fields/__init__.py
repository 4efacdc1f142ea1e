from __future__ import annotations

from .registry import FieldRegistry, normalize_key
from .spec import FieldSpec

__all__ = [
    "FieldSpec",
    "FieldRegistry",
    "normalize_key",
]
