from __future__ import annotations

import hashlib
from typing import Union

__all__ = ["_checksum_of_source"]


def _checksum_of_source(data: Union[str, bytes], algorithm: str = "sha256") -> str:
    b = data.encode("utf-8") if isinstance(data, str) else data
    return hashlib.new(algorithm, b).hexdigest()
