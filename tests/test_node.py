import pytest

from proxyconf.exceptions import (
    DocumentParseError,
    DuplicateKeyError,
    MissingKeyError,
    TypeMismatchError,
)
from proxyconf.node import (
    DocNode,
    Location,
    MappingView,
    NodeKind,
    expect_scalar,
    from_python,
    is_null,
    iter_sequence,
    load_document,
    load_file,
)


def test_load_document_kinds_tags_and_locations(node):
    doc = node(
        """
        name: edge
        port: 443
        enabled: true
        missing: ~
        items: [a, b]
        """
    )
    assert doc.kind is NodeKind.MAPPING
    view = MappingView(doc)
    assert view.keys() == ("name", "port", "enabled", "missing", "items")
    port = view.get("port")
    assert port.text == "443" and port.tag == "int"
    assert view.get("enabled").tag == "bool"
    assert is_null(view.get("missing"))
    assert view.get("items").is_sequence
    assert port.location.line == 3
    assert port.location.column == 7


def test_load_document_source_name_in_location():
    doc = load_document("a: 1\n", source="proxy.yaml")
    assert doc.location.source == "proxy.yaml"
    assert str(MappingView(doc).get("a").location) == "proxy.yaml:line 1, column 4"


def test_empty_document_is_empty_mapping():
    doc = load_document("")
    assert doc.is_mapping
    assert len(MappingView(doc)) == 0


def test_parse_error_carries_location():
    with pytest.raises(DocumentParseError) as ei:
        load_document("a: [1, 2\nb: 3\n")
    assert ei.value.location is not None
    assert ei.value.location.line is not None


def test_non_scalar_key_is_type_mismatch():
    with pytest.raises(TypeMismatchError):
        load_document("? [a, b]\n: 1\n")


def test_duplicate_keys_survive_loading_and_fail_on_iteration(node, ctx):
    doc = node(
        """
        a: 1
        b: 2
        a: 3
        """
    )
    view = MappingView(doc)
    assert view.keys() == ("a", "b", "a")
    with pytest.raises(DuplicateKeyError) as ei:
        view.items(ctx)
    assert ei.value.path == ("a",)
    assert ei.value.first.line == 2
    assert ei.value.location.line == 4
    assert ctx.path == ()


def test_merge_keys_explicit_wins(node, ctx):
    doc = node(
        """
        base: &b
          x: 1
          y: 2
        child:
          <<: *b
          y: 3
        """
    )
    child = MappingView(MappingView(doc).get("child"))
    assert dict((k, v.text) for k, v in child.items(ctx)) == {"x": "1", "y": "3"}


def test_mapping_view_require_and_type_errors(node, ctx):
    doc = node("a: [1]\n")
    view = MappingView(doc)
    with pytest.raises(MissingKeyError):
        view.require("b", ctx)
    seq = view.require("a", ctx)
    with pytest.raises(TypeMismatchError) as ei:
        MappingView(seq)
    assert ei.value.expected == "mapping"
    assert ei.value.actual == "sequence"
    with pytest.raises(TypeMismatchError):
        expect_scalar(seq)
    assert [(i, c.text) for i, c in iter_sequence(seq)] == [(0, "1")]
    with pytest.raises(TypeMismatchError):
        list(iter_sequence(doc))


def test_from_python_uses_path_tokens():
    doc = from_python({"servers": [{"name": "a", "port": 80, "tls": None, "on": True}]})
    server = iter_sequence(MappingView(doc).get("servers"))
    _, first = next(server)
    view = MappingView(first)
    assert view.get("name").location == Location(token="$.servers[0].name")
    assert view.get("port").tag == "int"
    assert is_null(view.get("tls"))
    assert view.get("on").text == "true"


def test_from_python_rejects_unsupported_values():
    with pytest.raises(TypeMismatchError):
        from_python({"a": object()})


def test_docnode_text_of_collection_is_type_mismatch():
    seq = DocNode(NodeKind.SEQUENCE, ())
    with pytest.raises(TypeMismatchError):
        seq.text


def test_load_file(tmp_path):
    p = tmp_path / "c.yaml"
    p.write_text("a: b\n", encoding="utf-8")
    doc = load_file(p)
    assert MappingView(doc).get("a").location.source == str(p)


def test_aliases_share_one_converted_node():
    lines = ['l0: &l0 ["leaf"]']
    for level in range(1, 9):
        refs = ", ".join([f"*l{level - 1}"] * 8)
        lines.append(f"l{level}: &l{level} [{refs}]")
    doc = load_document("\n".join(lines) + "\n")
    top = MappingView(doc).get("l8")
    assert len(top.value) == 8
    assert all(child is top.value[0] for child in top.value)
    assert top.value[0] is MappingView(doc).get("l7")


def test_merged_anchor_is_shared():
    doc = load_document("base: &b {x: 1}\none: {<<: *b}\ntwo: {<<: *b}\n")
    view = MappingView(doc)
    assert MappingView(view.get("one")).get("x") is MappingView(view.get("two")).get("x")


def test_recursive_alias_is_rejected():
    with pytest.raises(DocumentParseError):
        load_document("a: &a [*a]\n")
