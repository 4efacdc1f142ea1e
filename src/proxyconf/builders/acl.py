"""
Ordered ACL rule sets.

A rule set is a sequence of one-key mappings ``<action>: <matcher>``, or a
mapping ``{default: <action>, rules: [...]}``. Rules keep their declared
order; the first matching rule wins when the set is enforced elsewhere.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterator, Optional, Pattern, Tuple, Union

from proxyconf.capabilities import Capability
from proxyconf.context import ConversionContext
from proxyconf.exceptions import InvalidDomainNameError, InvalidValueError, UnknownKeyError
from proxyconf.fields import FieldRegistry, FieldSpec, normalize_key
from proxyconf.node import DocNode, MappingView, iter_sequence
from proxyconf.value.net import IpNetwork, as_ip_network, normalize_domain, parse_ip_address
from proxyconf.value.primitive import as_choice, as_str
from proxyconf.value.regex import as_regex

from .base import FieldValues, MappingBuilder

__all__ = [
    "AclAction",
    "MatcherKind",
    "AclMatcher",
    "AclRule",
    "AclRuleSet",
    "AclRuleSetBuilder",
    "build_acl_rule_set",
]


class AclAction(str, Enum):
    ALLOW = "allow"
    ALLOW_LOG = "allow_log"
    DENY = "deny"
    DENY_LOG = "deny_log"

    @property
    def forbidden(self) -> bool:
        return self in (AclAction.DENY, AclAction.DENY_LOG)

    @property
    def logged(self) -> bool:
        return self in (AclAction.ALLOW_LOG, AclAction.DENY_LOG)


_ACTIONS = {
    "allow": AclAction.ALLOW,
    "permit": AclAction.ALLOW,
    "allow_log": AclAction.ALLOW_LOG,
    "permit_log": AclAction.ALLOW_LOG,
    "deny": AclAction.DENY,
    "forbid": AclAction.DENY,
    "deny_log": AclAction.DENY_LOG,
    "forbid_log": AclAction.DENY_LOG,
}

_as_action = as_choice(_ACTIONS, "acl action")


class MatcherKind(str, Enum):
    NETWORK = "network"
    REGEX = "regex"
    SUFFIX = "suffix"


@dataclass(frozen=True)
class AclMatcher:
    kind: MatcherKind
    value: Union[IpNetwork, Pattern[str], str]

    def __str__(self) -> str:
        if self.kind is MatcherKind.REGEX:
            return f"regex:{self.value.pattern}"  # type: ignore[union-attr]
        return f"{self.kind.value}:{self.value}"


@dataclass(frozen=True)
class AclRule:
    action: AclAction
    matcher: AclMatcher


@dataclass(frozen=True)
class AclRuleSet:
    rules: Tuple[AclRule, ...] = ()
    # None leaves the choice to the consumer's own default policy
    default: Optional[AclAction] = None

    def __iter__(self) -> Iterator[AclRule]:
        return iter(self.rules)

    def __len__(self) -> int:
        return len(self.rules)


def _as_suffix(node: DocNode, ctx: ConversionContext) -> str:
    text = as_str(node, ctx).strip()
    try:
        return normalize_domain(text[1:] if text.startswith(".") else text)
    except ValueError as e:
        raise InvalidDomainNameError(str(e), node.location) from e


def _looks_like_network(text: str) -> bool:
    if "/" in text:
        return True
    try:
        parse_ip_address(text)
    except ValueError:
        return False
    return True


def _as_scalar_matcher(node: DocNode, ctx: ConversionContext) -> AclMatcher:
    text = as_str(node, ctx).strip()
    if _looks_like_network(text):
        return AclMatcher(MatcherKind.NETWORK, as_ip_network(node, ctx))
    return AclMatcher(MatcherKind.SUFFIX, _as_suffix(node, ctx))


_MATCHER_FIELDS = FieldRegistry(
    [
        FieldSpec("network", as_ip_network, aliases=("net",)),
        FieldSpec("regex", as_regex, capability=Capability.REGEX),
        FieldSpec("suffix", _as_suffix, aliases=("domain_suffix",)),
    ]
)


def _as_matcher(node: DocNode, ctx: ConversionContext) -> AclMatcher:
    if node.is_scalar:
        return _as_scalar_matcher(node, ctx)
    pairs = MappingView(node).items(ctx)
    if len(pairs) != 1:
        raise InvalidValueError(
            "acl matcher must be a mapping with exactly one of: network, regex, suffix",
            node.location,
        )
    raw_key, child = pairs[0]
    with ctx.enter(raw_key):
        key = _MATCHER_FIELDS.resolve(raw_key, child.location)
        value = _MATCHER_FIELDS.get(key).convert(child, ctx)
    return AclMatcher(MatcherKind(key), value)


def _as_rule(node: DocNode, ctx: ConversionContext) -> AclRule:
    pairs = MappingView(node).items(ctx)
    if len(pairs) != 1:
        raise InvalidValueError(
            "acl rule must be a single '<action>: <matcher>' mapping", node.location
        )
    raw_key, child = pairs[0]
    with ctx.enter(raw_key):
        action = _ACTIONS.get(normalize_key(raw_key))
        if action is None:
            raise UnknownKeyError(raw_key, child.location)
        return AclRule(action, _as_matcher(child, ctx))


def _as_rules(node: DocNode, ctx: ConversionContext) -> Tuple[AclRule, ...]:
    rules = []
    for index, child in iter_sequence(node):
        with ctx.enter(index):
            rules.append(_as_rule(child, ctx))
    return tuple(rules)


class AclRuleSetBuilder(MappingBuilder[AclRuleSet]):
    capability = Capability.ACL_RULE
    what = "acl rule set"
    fields = FieldRegistry(
        [
            FieldSpec("default", _as_action, aliases=("default_action",)),
            FieldSpec("rules", _as_rules, default=()),
        ]
    )

    def build(self, node: DocNode, ctx: ConversionContext) -> AclRuleSet:
        if node.is_sequence:
            self.check_capability(node, ctx)
            return AclRuleSet(rules=_as_rules(node, ctx))
        return super().build(node, ctx)

    def finish(self, values: FieldValues, node: DocNode, ctx: ConversionContext) -> AclRuleSet:
        return AclRuleSet(rules=values["rules"], default=values["default"])


build_acl_rule_set = AclRuleSetBuilder()
