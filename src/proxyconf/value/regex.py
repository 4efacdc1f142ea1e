from __future__ import annotations

import re
from typing import Pattern

from proxyconf.capabilities import Capability
from proxyconf.context import ConversionContext
from proxyconf.exceptions import InvalidRegexError
from proxyconf.node import DocNode

from .primitive import as_str

__all__ = ["as_regex"]


def as_regex(node: DocNode, ctx: ConversionContext) -> Pattern[str]:
    """Compile eagerly so a bad pattern fails now instead of at first match."""
    ctx.require(Capability.REGEX, node.location)
    text = as_str(node, ctx)
    if not text:
        raise InvalidRegexError("empty regular expression", node.location)
    try:
        return re.compile(text)
    except re.error as e:
        raise InvalidRegexError(f"invalid regular expression {text!r}: {e}", node.location) from e
