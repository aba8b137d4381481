"""Construction of LDAP search filters.

Filters are built as small expression trees (`And`, `Or`, `Not` over atomic
`Equal`, `Present`, `Substring` and `Raw` predicates) and serialized to the
directory's native string syntax with `str`. Values given to the atomic
predicates are escaped during serialization, so user-supplied search strings
can never change the structure of a filter.

An empty filter serializes to the empty string. It means "this clause does
not constrain the search" and is dropped when combined with other filters,
which is different from a filter that matches everything.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, ClassVar

from bonsai.utils import escape_filter_exp

from .exceptions import UnknownPropertyError
from .models.directory import Group
from .models.enums import FilterTest

if TYPE_CHECKING:
    from .storage.directory import DirectoryConnection

__all__ = [
    "And",
    "Condition",
    "Equal",
    "Filter",
    "Not",
    "Or",
    "Present",
    "Raw",
    "Substring",
    "build_filter",
    "build_member_of_filter",
    "build_principal_filter",
    "combine",
    "member_of_filter",
    "principal_filter",
]

SUBSTRING_MATCHING_RULE = "caseIgnoreIA5Match"
"""Matching rule used for case-insensitive principal property searches."""


class Filter:
    """Base class for nodes of a filter expression."""

    def __str__(self) -> str:
        raise NotImplementedError

    def __bool__(self) -> bool:
        return bool(str(self))

    def __and__(self, other: Filter) -> Filter:
        return And(self, other)

    def __or__(self, other: Filter) -> Filter:
        return Or(self, other)

    def __invert__(self) -> Filter:
        return Not(self)


@dataclass(frozen=True)
class Raw(Filter):
    """A predicate given as a literal filter string.

    Parentheses are added unless the text is already wrapped in them. The
    text is used verbatim, so it must never contain untrusted input.
    """

    text: str

    def __str__(self) -> str:
        if not self.text:
            return ""
        if self.text.startswith("(") and self.text.endswith(")"):
            return self.text
        return f"({self.text})"


@dataclass(frozen=True)
class Equal(Filter):
    """Attribute equality."""

    attribute: str
    value: str

    def __str__(self) -> str:
        return f"({self.attribute}={escape_filter_exp(self.value)})"


@dataclass(frozen=True)
class Present(Filter):
    """Attribute presence."""

    attribute: str

    def __str__(self) -> str:
        return f"({self.attribute}=*)"


@dataclass(frozen=True)
class Substring(Filter):
    """Attribute contains a value, optionally with an extensible match rule."""

    attribute: str
    value: str
    rule: str | None = None

    def __str__(self) -> str:
        attribute = self.attribute
        if self.rule:
            attribute = f"{attribute}:{self.rule}:"
        return f"({attribute}=*{escape_filter_exp(self.value)}*)"


@dataclass(frozen=True, init=False)
class _Compound(Filter):
    children: tuple[Filter, ...]

    operator: ClassVar[str]

    def __init__(self, *children: Filter) -> None:
        kept = tuple(c for c in children if c)
        object.__setattr__(self, "children", kept)

    def __str__(self) -> str:
        if not self.children:
            return ""
        if len(self.children) == 1:
            return str(self.children[0])
        inner = "".join(str(c) for c in self.children)
        return f"({self.operator}{inner})"


class And(_Compound):
    """All children must match."""

    operator = "&"


class Or(_Compound):
    """At least one child must match."""

    operator = "|"


@dataclass(frozen=True)
class Not(Filter):
    """Negation of a filter. Negating an empty filter is still empty."""

    child: Filter

    def __str__(self) -> str:
        inner = str(self.child)
        return f"(!{inner})" if inner else ""


Condition = Filter | str | Mapping[str, str] | Sequence[str] | None
"""Anything accepted as a condition by `combine` and `build_filter`.

Strings are raw predicates. Mappings are attribute and value pairs, as are
flattened sequences of strings, so both ``{"a": "1", "b": "2"}`` and
``["a", "1", "b", "2"]`` stand for ``(a=1)`` and ``(b=2)``.
"""


def _to_filters(condition: Condition) -> list[Filter]:
    if not condition:
        return []
    if isinstance(condition, Filter):
        return [condition]
    if isinstance(condition, str):
        return [Raw(condition)]
    if isinstance(condition, Mapping):
        return [Equal(a, v) for a, v in condition.items()]
    if len(condition) % 2:
        msg = f"Attribute and value list has odd length: {list(condition)}"
        raise ValueError(msg)
    pairs = zip(condition[::2], condition[1::2], strict=True)
    return [Equal(attribute, value) for attribute, value in pairs]


def _parse_test(test: FilterTest | str | None) -> FilterTest:
    if test is None:
        return FilterTest.allof
    return FilterTest(test)


def combine(test: FilterTest | str | None, *conditions: Condition) -> Filter:
    """Combine conditions into a single filter expression.

    Parameters
    ----------
    test
        ``allof`` to require every condition, ``anyof`` to require any one.
        `None` is treated as ``allof``.
    *conditions
        Conditions to combine. Empty conditions are skipped.

    Returns
    -------
    Filter
        The combined filter.
    """
    filters: list[Filter] = []
    for condition in conditions:
        filters.extend(_to_filters(condition))
    if _parse_test(test) == FilterTest.anyof:
        return Or(*filters)
    return And(*filters)


def build_filter(test: FilterTest | str | None, *conditions: Condition) -> str:
    """Build an LDAP filter string from conditions.

    For example, ``build_filter("allof", "mail=*", ["givenname", "padre"])``
    returns ``(&(mail=*)(givenname=padre))``. A single remaining condition is
    returned without a combining wrapper, and no conditions at all produce the
    empty string. The result is itself a valid condition for another call.

    Parameters
    ----------
    test
        ``allof`` (``&``) or ``anyof`` (``|``).
    *conditions
        Conditions to combine. See `Condition`.

    Returns
    -------
    str
        Serialized filter, possibly empty.
    """
    return str(combine(test, *conditions))


def principal_filter(
    search_properties: Mapping[str, str],
    field_map: Mapping[str, str],
    test: FilterTest | str | None = FilterTest.allof,
) -> Filter:
    """Translate protocol property searches into a filter expression.

    Each property becomes a case-insensitive substring match against the
    attribute it maps to.

    Raises
    ------
    UnknownPropertyError
        Raised if a property has no entry in ``field_map``.
    """
    conditions: list[Condition] = []
    for prop, value in search_properties.items():
        if prop not in field_map:
            raise UnknownPropertyError(prop)
        attribute = field_map[prop]
        conditions.append(
            Substring(attribute, value, rule=SUBSTRING_MATCHING_RULE)
        )
    return combine(test, *conditions)


def build_principal_filter(
    search_properties: Mapping[str, str],
    field_map: Mapping[str, str],
    test: FilterTest | str | None = FilterTest.allof,
) -> str:
    """Build an LDAP filter string from protocol property searches.

    Parameters
    ----------
    search_properties
        Mapping of protocol property names to the values to search for.
    field_map
        Mapping of protocol property names to directory attributes.
    test
        ``allof`` or ``anyof``.

    Returns
    -------
    str
        Serialized filter, empty if there were no search properties.

    Raises
    ------
    UnknownPropertyError
        Raised if a property has no entry in ``field_map``.
    """
    return str(principal_filter(search_properties, field_map, test))


def member_of_filter(
    directory: DirectoryConnection,
    group_names: Iterable[str],
    *,
    include_self: bool = False,
) -> Filter:
    """Build a filter matching members of any of the given groups.

    Membership is tested against the directory's ``memberOf`` attribute,
    which FreeIPA maintains to include indirect (nested) memberships. With
    ``include_self``, the groups themselves match too, which selects a whole
    nested hierarchy of groups.
    """
    conditions: list[Filter] = []
    for name in group_names:
        group_dn = directory.resolve_dn(Group.relative_dn(name))
        conditions.append(Equal("memberOf", group_dn))
        if include_self:
            conditions.append(Equal("cn", name))
    return Or(*conditions)


def build_member_of_filter(
    directory: DirectoryConnection,
    group_names: Iterable[str],
    *,
    include_self: bool = False,
) -> str:
    """Build an LDAP filter string matching members of the given groups.

    Parameters
    ----------
    directory
        Connection used to resolve group names to DNs.
    group_names
        Names of the groups. No groups produce the empty string.
    include_self
        Whether the group entries themselves should also match.

    Returns
    -------
    str
        Serialized filter, possibly empty.
    """
    return str(
        member_of_filter(directory, group_names, include_self=include_self)
    )
