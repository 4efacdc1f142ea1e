"""
Document nodes: an immutable view of one parsed YAML document.

Nodes are produced with PyYAML's composer rather than ``yaml.safe_load`` so
that every node keeps its line/column and duplicate mapping keys survive
long enough to be reported instead of being silently overwritten.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import IO, TYPE_CHECKING, Any, Dict, Iterator, List, Optional, Set, Tuple, Union

import yaml

from proxyconf.exceptions import (
    DocumentParseError,
    DuplicateKeyError,
    MissingKeyError,
    TypeMismatchError,
)

if TYPE_CHECKING:
    from proxyconf.context import ConversionContext

logger = logging.getLogger("proxyconf.node")
logger.addHandler(logging.NullHandler())

__all__ = [
    "NodeKind",
    "Location",
    "DocNode",
    "MappingView",
    "load_document",
    "load_file",
    "from_python",
    "expect_scalar",
    "iter_sequence",
    "is_null",
]

_TAG_PREFIX = "tag:yaml.org,2002:"
_MERGE_TAG = _TAG_PREFIX + "merge"


class NodeKind(str, Enum):
    SCALAR = "scalar"
    SEQUENCE = "sequence"
    MAPPING = "mapping"


@dataclass(frozen=True)
class Location:
    """Where a node came from: 1-based line/column, or an opaque path token."""

    line: Optional[int] = None
    column: Optional[int] = None
    source: Optional[str] = None
    token: Optional[str] = None

    @property
    def known(self) -> bool:
        return self.line is not None or self.token is not None

    @classmethod
    def from_mark(cls, mark: Any) -> "Location":
        if mark is None:
            return cls()
        name = mark.name if mark.name and not mark.name.startswith("<") else None
        return cls(line=mark.line + 1, column=mark.column + 1, source=name)

    def __str__(self) -> str:
        if self.line is not None:
            where = f"line {self.line}, column {self.column}"
            return f"{self.source}:{where}" if self.source else where
        return self.token or "<unknown>"


Pairs = Tuple[Tuple[str, "DocNode"], ...]


@dataclass(frozen=True)
class DocNode:
    kind: NodeKind
    value: Union[str, Tuple["DocNode", ...], Pairs]
    location: Location = Location()
    tag: Optional[str] = None

    @property
    def is_scalar(self) -> bool:
        return self.kind is NodeKind.SCALAR

    @property
    def is_sequence(self) -> bool:
        return self.kind is NodeKind.SEQUENCE

    @property
    def is_mapping(self) -> bool:
        return self.kind is NodeKind.MAPPING

    @property
    def type_name(self) -> str:
        """Human readable variant name used in type mismatch messages."""
        if self.kind is NodeKind.SCALAR:
            return f"scalar ({self.tag})" if self.tag else "scalar"
        return self.kind.value

    @property
    def text(self) -> str:
        if not isinstance(self.value, str):
            raise TypeMismatchError("scalar", self.type_name, self.location)
        return self.value


# ------------------------------
# Building nodes
# ------------------------------


def load_document(stream: Union[str, bytes, IO[Any]], source: Optional[str] = None) -> DocNode:
    """
    Parse one YAML document into a DocNode tree.

    An empty document yields an empty mapping.
    """
    loader = yaml.SafeLoader(stream)
    if source is not None:
        # marks take their name from the reader
        loader.name = source
    try:
        root = loader.get_single_node()
    except yaml.MarkedYAMLError as exc:
        raise DocumentParseError(
            f"invalid YAML: {exc.problem or exc.context}",
            Location.from_mark(exc.problem_mark or exc.context_mark),
        ) from exc
    except yaml.YAMLError as exc:
        raise DocumentParseError(f"invalid YAML: {exc}") from exc
    finally:
        loader.dispose()

    if root is None:
        logger.debug("Empty document from %s", source or "<stream>")
        return DocNode(NodeKind.MAPPING, (), Location(line=1, column=1, source=source))
    return _from_yaml(root, set(), {})


def load_file(path: Union[str, Path]) -> DocNode:
    p = Path(path)
    logger.debug("Loading YAML document from %s", p)
    with p.open("r", encoding="utf-8") as f:
        text = f.read()
    return load_document(text, source=str(p))


def _short_tag(tag: Optional[str]) -> Optional[str]:
    if tag and tag.startswith(_TAG_PREFIX):
        return tag[len(_TAG_PREFIX) :]
    return tag


def _location(node: yaml.Node) -> Location:
    return Location.from_mark(node.start_mark)


def _from_yaml(node: yaml.Node, active: Set[int], memo: Dict[int, DocNode]) -> DocNode:
    # an anchored node is converted once and shared by every alias to it
    done = memo.get(id(node))
    if done is not None:
        return done
    if id(node) in active:
        raise DocumentParseError("recursive alias is not supported", _location(node))

    if isinstance(node, yaml.ScalarNode):
        result = DocNode(NodeKind.SCALAR, str(node.value), _location(node), _short_tag(node.tag))
        memo[id(node)] = result
        return result

    active.add(id(node))
    try:
        if isinstance(node, yaml.SequenceNode):
            children = tuple(_from_yaml(child, active, memo) for child in node.value)
            result = DocNode(NodeKind.SEQUENCE, children, _location(node))
        elif isinstance(node, yaml.MappingNode):
            result = DocNode(NodeKind.MAPPING, _mapping_pairs(node, active, memo), _location(node))
        else:
            raise DocumentParseError(f"unsupported YAML node {type(node).__name__}")
    finally:
        active.discard(id(node))

    memo[id(node)] = result
    return result


def _mapping_pairs(node: yaml.MappingNode, active: Set[int], memo: Dict[int, DocNode]) -> Pairs:
    explicit: List[Tuple[str, DocNode]] = []
    merged: List[Tuple[str, DocNode]] = []
    for key_node, value_node in node.value:
        if key_node.tag == _MERGE_TAG:
            merged.extend(_merge_source(value_node, active, memo))
            continue
        if not isinstance(key_node, yaml.ScalarNode):
            raise TypeMismatchError("scalar mapping key", "collection key", _location(key_node))
        explicit.append((str(key_node.value), _from_yaml(value_node, active, memo)))

    # explicit keys take precedence over merged ones (YAML merge semantics)
    explicit_keys = {k for k, _ in explicit}
    inherited: Dict[str, DocNode] = {}
    for key, value in merged:
        if key not in explicit_keys and key not in inherited:
            inherited[key] = value
    return tuple(inherited.items()) + tuple(explicit)


def _merge_source(
    value_node: yaml.Node, active: Set[int], memo: Dict[int, DocNode]
) -> List[Tuple[str, DocNode]]:
    if isinstance(value_node, yaml.MappingNode):
        return list(_from_yaml(value_node, active, memo).value)
    if isinstance(value_node, yaml.SequenceNode):
        out: List[Tuple[str, DocNode]] = []
        for item in value_node.value:
            if not isinstance(item, yaml.MappingNode):
                raise TypeMismatchError("mapping for merge", type(item).__name__, _location(item))
            out.extend(_from_yaml(item, active, memo).value)
        return out
    raise TypeMismatchError(
        "mapping for merge", type(value_node).__name__, _location(value_node)
    )


def from_python(obj: Any, token: str = "$") -> DocNode:
    """
    Build a DocNode tree from already-loaded Python data (dict/list/scalars).

    Locations are opaque path tokens such as ``$.servers[0].tls``.
    """
    loc = Location(token=token)
    if isinstance(obj, dict):
        pairs: List[Tuple[str, DocNode]] = []
        for k, v in obj.items():
            if isinstance(k, bool) or not isinstance(k, (str, int)):
                raise TypeMismatchError("scalar mapping key", type(k).__name__, loc)
            key = str(k)
            pairs.append((key, from_python(v, f"{token}.{key}")))
        return DocNode(NodeKind.MAPPING, tuple(pairs), loc)
    if isinstance(obj, (list, tuple)):
        children = tuple(from_python(v, f"{token}[{i}]") for i, v in enumerate(obj))
        return DocNode(NodeKind.SEQUENCE, children, loc)
    if obj is None:
        return DocNode(NodeKind.SCALAR, "", loc, "null")
    if isinstance(obj, bool):
        return DocNode(NodeKind.SCALAR, "true" if obj else "false", loc, "bool")
    if isinstance(obj, int):
        return DocNode(NodeKind.SCALAR, str(obj), loc, "int")
    if isinstance(obj, float):
        return DocNode(NodeKind.SCALAR, repr(obj), loc, "float")
    if isinstance(obj, str):
        return DocNode(NodeKind.SCALAR, obj, loc, "str")
    raise TypeMismatchError("YAML compatible value", type(obj).__name__, loc)


# ------------------------------
# Navigation
# ------------------------------


def expect_scalar(node: DocNode, expected: str = "scalar") -> str:
    if not node.is_scalar:
        raise TypeMismatchError(expected, node.type_name, node.location)
    return node.text


def is_null(node: DocNode) -> bool:
    return node.is_scalar and node.tag == "null"


def iter_sequence(node: DocNode) -> Iterator[Tuple[int, DocNode]]:
    if not node.is_sequence:
        raise TypeMismatchError("sequence", node.type_name, node.location)
    assert isinstance(node.value, tuple)
    for index, child in enumerate(node.value):
        yield index, child  # type: ignore[misc]


class MappingView:
    """Read-only access to a mapping node's keys in document order."""

    def __init__(self, node: DocNode) -> None:
        if not node.is_mapping:
            raise TypeMismatchError("mapping", node.type_name, node.location)
        self.node = node
        self._pairs: Pairs = node.value  # type: ignore[assignment]

    @property
    def location(self) -> Location:
        return self.node.location

    def __len__(self) -> int:
        return len(self._pairs)

    def keys(self) -> Tuple[str, ...]:
        return tuple(k for k, _ in self._pairs)

    def get(self, key: str) -> Optional[DocNode]:
        for k, v in self._pairs:
            if k == key:
                return v
        return None

    def require(self, key: str, ctx: "ConversionContext") -> DocNode:
        value = self.get(key)
        if value is None:
            raise MissingKeyError(key, self.location)
        return value

    def items(self, ctx: "ConversionContext") -> List[Tuple[str, DocNode]]:
        """
        Return all (key, node) pairs, failing on the first repeated key.

        The check runs before anything is returned so no sibling gets
        converted from a mapping that is already known to be ambiguous.
        """
        seen: Dict[str, Location] = {}
        for key, value in self._pairs:
            if key in seen:
                with ctx.enter(key):
                    raise DuplicateKeyError(key, value.location, first=seen[key])
            seen[key] = value.location
        return list(self._pairs)

