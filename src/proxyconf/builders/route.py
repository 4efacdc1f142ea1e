from __future__ import annotations

from dataclasses import dataclass
from typing import Pattern, Tuple

from proxyconf.capabilities import Capability
from proxyconf.context import ConversionContext
from proxyconf.exceptions import MissingKeyError
from proxyconf.fields import FieldRegistry, FieldSpec
from proxyconf.node import DocNode
from proxyconf.value.net import Host, IpNetwork, as_domain_name, as_host, as_ip_network
from proxyconf.value.primitive import as_list, as_node_name
from proxyconf.value.regex import as_regex

from .base import FieldValues, MappingBuilder

__all__ = [
    "RouteEntry",
    "RouteTable",
    "RouteEntryBuilder",
    "RouteTableBuilder",
    "build_route_table",
]

MATCH_KEYS = ("exact_match", "child_match", "subnet_match", "regex_match")


@dataclass(frozen=True)
class RouteEntry:
    next: str
    exact_match: Tuple[Host, ...] = ()
    child_match: Tuple[str, ...] = ()
    subnet_match: Tuple[IpNetwork, ...] = ()
    regex_match: Tuple[Pattern[str], ...] = ()


@dataclass(frozen=True)
class RouteTable:
    default: str
    rules: Tuple[RouteEntry, ...] = ()

    def next_hops(self) -> Tuple[str, ...]:
        """Every node name this table can route to, default first, without repeats."""
        seen = {self.default: None}
        for rule in self.rules:
            seen.setdefault(rule.next, None)
        return tuple(seen)


class RouteEntryBuilder(MappingBuilder[RouteEntry]):
    what = "route entry"
    fields = FieldRegistry(
        [
            FieldSpec("next", as_node_name, required=True, aliases=("next_hop",)),
            FieldSpec("exact_match", as_list(as_host), default=(), aliases=("exact",)),
            FieldSpec("child_match", as_list(as_domain_name), default=(), aliases=("child",)),
            FieldSpec("subnet_match", as_list(as_ip_network), default=(), aliases=("subnet",)),
            FieldSpec(
                "regex_match",
                as_list(as_regex),
                default=(),
                aliases=("regex",),
                capability=Capability.REGEX,
            ),
        ]
    )

    def finish(self, values: FieldValues, node: DocNode, ctx: ConversionContext) -> RouteEntry:
        if not any(values[k] for k in MATCH_KEYS):
            raise MissingKeyError(" or ".join(MATCH_KEYS), node.location)
        return RouteEntry(
            next=values["next"],
            exact_match=values["exact_match"],
            child_match=values["child_match"],
            subnet_match=values["subnet_match"],
            regex_match=values["regex_match"],
        )


class RouteTableBuilder(MappingBuilder[RouteTable]):
    capability = Capability.ROUTE
    what = "route table"
    fields = FieldRegistry(
        [
            FieldSpec("default", as_node_name, required=True, aliases=("default_next",)),
            FieldSpec("rules", as_list(RouteEntryBuilder()), default=(), aliases=("rule",)),
        ]
    )

    def finish(self, values: FieldValues, node: DocNode, ctx: ConversionContext) -> RouteTable:
        return RouteTable(default=values["default"], rules=values["rules"])


build_route_table = RouteTableBuilder()
