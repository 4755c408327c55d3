"""
LDAP search filter expressions.

Filters are immutable values.  Each node knows how to render itself as an
RFC 4515 filter string, which is what python-ldap sends to the server.  The
``equality_match()``, ``substrings()`` ... functions at the bottom of this
module are the usual way to build them::

    >>> users = with_and([
    ...     equality_match("objectClass", "user"),
    ...     substrings("sn", ("initial", "smi")),
    ...     negate(present("lockoutTime")),
    ... ])
    >>> str(users)
    '(&(objectClass=user)(sn=smi*)(!(lockoutTime=*)))'

Filters can also be combined with ``&``, ``|`` and ``~``.
"""

import enum
import re
from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from ldap.filter import escape_filter_chars

from .typing import FilterValue

#: Keys understood by :class:`ExtensibleMatch`.
EXTENSIBLE_MATCH_KEYS = ("type", "matchingRule", "dnAttributes")

#: An RFC 4512 OID: a descriptor like ``cn`` or a numeric OID like ``2.5.4.3``.
OID_RE = re.compile(r"[A-Za-z][A-Za-z0-9-]*|[0-9]+(?:\.[0-9]+)+")
#: An RFC 4512 attribute description: an OID followed by ``;options``.
ATTRIBUTE_DESCRIPTION_RE = re.compile(
    r"(?:[A-Za-z][A-Za-z0-9-]*|[0-9]+(?:\.[0-9]+)+)(?:;[A-Za-z0-9-]+)*"
)


def escape_value(value: Any) -> str:
    """
    Escape an assertion value for use inside a filter string.

    Text is escaped per RFC 4515.  ``bytes`` are written out as ``\\xx`` for
    every byte, so binary values like ``objectSid`` or ``objectGUID`` can be
    matched exactly.

    Args:
        value: the value to escape; anything that is not ``str`` or ``bytes``
            is converted with ``str()`` first.

    Returns:
        The escaped value.

    """
    if isinstance(value, (bytes, bytearray)):
        return "".join(f"\\{byte:02x}" for byte in value)
    return escape_filter_chars(str(value))


def check_attribute(name: str) -> str:
    """
    Make sure ``name`` is an RFC 4512 attribute description such as ``cn``,
    ``userCertificate;binary`` or ``2.5.4.3``.

    Raises:
        ValueError: ``name`` is anything else.  Nothing that could change the
            structure of a filter string gets through.

    Returns:
        ``name``, unchanged.

    """
    if not isinstance(name, str) or not ATTRIBUTE_DESCRIPTION_RE.fullmatch(name):
        msg = f"Not a valid attribute description: {name!r}"
        raise ValueError(msg)
    return name


def check_oid(oid: str) -> str:
    """Like :func:`check_attribute`, for a matching rule OID (no options)."""
    if not isinstance(oid, str) or not OID_RE.fullmatch(oid):
        msg = f"Not a valid OID: {oid!r}"
        raise ValueError(msg)
    return oid


class SubstringPosition(str, enum.Enum):
    """Where a substring fragment must appear in the attribute value."""

    INITIAL = "initial"
    ANY = "any"
    FINAL = "final"


@dataclass(frozen=True)
class SubstringPart:
    """One ``{position, fragment}`` piece of a :class:`Substring` filter."""

    position: SubstringPosition
    fragment: FilterValue

    def __post_init__(self) -> None:
        try:
            position = SubstringPosition(self.position)
        except ValueError as e:
            msg = (
                f'Unknown substring position "{self.position}"; expected one of '
                f"{', '.join(p.value for p in SubstringPosition)}"
            )
            raise ValueError(msg) from e
        object.__setattr__(self, "position", position)
        if self.fragment is None or len(self.fragment) == 0:
            msg = "Substring fragments must not be empty"
            raise ValueError(msg)


class Filter(ABC):
    """
    Base class for every filter node.

    Subclasses implement :meth:`to_string`.  ``a & b``, ``a | b`` and ``~a``
    build :class:`And`, :class:`Or` and :class:`Not` nodes.
    """

    @abstractmethod
    def to_string(self) -> str:
        """
        Render this filter as an RFC 4515 filter string.

        Returns:
            The filter string.

        """

    def __str__(self) -> str:
        return self.to_string()

    def __and__(self, other: "Filter") -> "And":
        return And((self, other))

    def __or__(self, other: "Filter") -> "Or":
        return Or((self, other))

    def __invert__(self) -> "Not":
        return Not(self)


class AttributeFilter(Filter):
    """
    A filter on a single attribute.  ``attribute`` must be an RFC 4512
    attribute description, so it can be written into the filter string as is.
    """

    attribute: str

    def __post_init__(self) -> None:
        check_attribute(self.attribute)


@dataclass(frozen=True)
class Equality(AttributeFilter):
    """``(attribute=value)``"""

    attribute: str
    value: FilterValue

    def to_string(self) -> str:
        return f"({self.attribute}={escape_value(self.value)})"


@dataclass(frozen=True)
class Substring(AttributeFilter):
    """
    ``(attribute=initial*any*...*final)``

    ``parts`` must not be empty, an ``initial`` part may only come first and a
    ``final`` part may only come last.
    """

    attribute: str
    parts: tuple[SubstringPart, ...]

    def __post_init__(self) -> None:
        super().__post_init__()
        parts = tuple(self.parts)
        object.__setattr__(self, "parts", parts)
        if not parts:
            msg = f"Substring filter on {self.attribute} needs at least one part"
            raise ValueError(msg)
        for index, part in enumerate(parts):
            if part.position == SubstringPosition.INITIAL and index != 0:
                msg = "An initial substring may only appear as the first part"
                raise ValueError(msg)
            if part.position == SubstringPosition.FINAL and index != len(parts) - 1:
                msg = "A final substring may only appear as the last part"
                raise ValueError(msg)

    def to_string(self) -> str:
        initial = ""
        final = ""
        middle: list[str] = []
        for part in self.parts:
            fragment = escape_value(part.fragment)
            if part.position == SubstringPosition.INITIAL:
                initial = fragment
            elif part.position == SubstringPosition.FINAL:
                final = fragment
            else:
                middle.append(fragment)
        return f"({self.attribute}={'*'.join([initial, *middle, final])})"


@dataclass(frozen=True)
class ApproxMatch(AttributeFilter):
    """``(attribute~=value)``"""

    attribute: str
    value: FilterValue

    def to_string(self) -> str:
        return f"({self.attribute}~={escape_value(self.value)})"


@dataclass(frozen=True)
class LessOrEqual(AttributeFilter):
    """``(attribute<=value)``"""

    attribute: str
    value: FilterValue

    def to_string(self) -> str:
        return f"({self.attribute}<={escape_value(self.value)})"


@dataclass(frozen=True)
class GreaterOrEqual(AttributeFilter):
    """``(attribute>=value)``"""

    attribute: str
    value: FilterValue

    def to_string(self) -> str:
        return f"({self.attribute}>={escape_value(self.value)})"


@dataclass(frozen=True)
class Present(AttributeFilter):
    """``(attribute=*)``"""

    attribute: str

    def to_string(self) -> str:
        return f"({self.attribute}=*)"


@dataclass(frozen=True)
class ExtensibleMatch(Filter):
    """
    ``(type:dn:matchingRule:=value)``

    ``attributes`` holds ``(key, value)`` pairs where key is one of ``type``,
    ``matchingRule`` or ``dnAttributes``.  At least one of ``type`` and
    ``matchingRule`` is required.
    """

    match_value: FilterValue
    attributes: tuple[tuple[str, Any], ...]

    def __post_init__(self) -> None:
        attributes = self.attributes
        if isinstance(attributes, Mapping):
            attributes = attributes.items()
        attributes = tuple((str(key), value) for key, value in attributes)
        object.__setattr__(self, "attributes", attributes)
        unknown = [key for key, _ in attributes if key not in EXTENSIBLE_MATCH_KEYS]
        if unknown:
            msg = (
                f"Unknown extensible match keys: {', '.join(unknown)}; expected "
                f"{', '.join(EXTENSIBLE_MATCH_KEYS)}"
            )
            raise ValueError(msg)
        options = self.options
        if not options.get("type") and not options.get("matchingRule"):
            msg = "An extensible match needs a type, a matchingRule or both"
            raise ValueError(msg)
        if options.get("type"):
            check_attribute(options["type"])
        if options.get("matchingRule"):
            check_oid(options["matchingRule"])

    @property
    def options(self) -> dict[str, Any]:
        return dict(self.attributes)

    def to_string(self) -> str:
        options = self.options
        out = str(options.get("type") or "")
        if options.get("dnAttributes"):
            out += ":dn"
        if options.get("matchingRule"):
            out += f":{options['matchingRule']}"
        return f"({out}:={escape_value(self.match_value)})"


def _as_children(children: Iterable[Filter]) -> tuple[Filter, ...]:
    children = tuple(children)
    for child in children:
        if not isinstance(child, Filter):
            msg = f"Filters can only be combined with other filters, not {child!r}"
            raise TypeError(msg)
    return children


@dataclass(frozen=True)
class And(Filter):
    """``(&(child1)(child2)...)``"""

    children: tuple[Filter, ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "children", _as_children(self.children))

    def to_string(self) -> str:
        return "(&" + "".join(child.to_string() for child in self.children) + ")"


@dataclass(frozen=True)
class Or(Filter):
    """``(|(child1)(child2)...)``"""

    children: tuple[Filter, ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "children", _as_children(self.children))

    def to_string(self) -> str:
        return "(|" + "".join(child.to_string() for child in self.children) + ")"


@dataclass(frozen=True)
class Not(Filter):
    """``(!(child))``"""

    child: Filter

    def __post_init__(self) -> None:
        _as_children([self.child])

    def to_string(self) -> str:
        return f"(!{self.child.to_string()})"


# -----------------------
# Builders
# -----------------------


def equality_match(field: str, value: FilterValue) -> Equality:
    """
    Build an equality filter.

    Example:
        >>> str(equality_match("cn", "John Smith"))
        '(cn=John Smith)'

    """
    return Equality(str(field), value)


def _is_single_part(substring: Any) -> bool:
    if isinstance(substring, SubstringPart):
        return True
    return (
        isinstance(substring, tuple)
        and len(substring) == 2  # noqa: PLR2004
        and isinstance(substring[0], str)
    )


def substrings(field: str, substring: Any) -> Substring:
    """
    Build a substring filter.

    ``substring`` is either a single ``(position, fragment)`` pair or a list of
    them, where position is ``"initial"``, ``"any"`` or ``"final"`` (or the
    matching :class:`SubstringPosition`).  A bare ``str`` or ``bytes`` means
    ``("any", substring)``.

    Example:
        >>> str(substrings("sn", ("initial", "smi")))
        '(sn=smi*)'
        >>> str(substrings("cn", [("initial", "J"), ("any", "oh"), ("final", "n")]))
        '(cn=J*oh*n)'
        >>> str(substrings("sn", "mit"))
        '(sn=*mit*)'

    Args:
        field: the attribute to match
        substring: one ``(position, fragment)`` pair, a sequence of them, or a
            bare fragment

    Raises:
        TypeError: an item of ``substring`` is not a ``(position, fragment)``
            pair.
        ValueError: a position is unknown, a fragment is empty, the parts are
            in an impossible order or there are no parts at all.

    Returns:
        The substring filter.

    """
    if isinstance(substring, (str, bytes)):
        substring = (SubstringPosition.ANY, substring)
    pairs = [substring] if _is_single_part(substring) else list(substring)
    parts: list[SubstringPart] = []
    for pair in pairs:
        if isinstance(pair, SubstringPart):
            parts.append(pair)
        elif isinstance(pair, (tuple, list)) and len(pair) == 2:  # noqa: PLR2004
            parts.append(SubstringPart(pair[0], pair[1]))
        else:
            msg = f"Substring parts must be (position, fragment) pairs, not {pair!r}"
            raise TypeError(msg)
    return Substring(str(field), tuple(parts))


def approx_match(field: str, value: FilterValue) -> ApproxMatch:
    """
    Build an approximate match filter.

    Example:
        >>> str(approx_match("givenName", "Test"))
        '(givenName~=Test)'

    """
    return ApproxMatch(str(field), value)


def less_or_equal(field: str, value: FilterValue) -> LessOrEqual:
    """
    Build a ``<=`` filter.

    Example:
        >>> str(less_or_equal("lastLogon", "1000"))
        '(lastLogon<=1000)'

    """
    return LessOrEqual(str(field), value)


def greater_or_equal(field: str, value: FilterValue) -> GreaterOrEqual:
    """
    Build a ``>=`` filter.

    Example:
        >>> str(greater_or_equal("lastLogon", "1000"))
        '(lastLogon>=1000)'

    """
    return GreaterOrEqual(str(field), value)


def present(field: str) -> Present:
    """
    Build a presence filter.

    Example:
        >>> str(present("objectClass"))
        '(objectClass=*)'

    """
    return Present(str(field))


def extensible_match(
    match_value: FilterValue,
    match_attributes: Mapping[str, Any] | Iterable[tuple[str, Any]],
) -> ExtensibleMatch:
    """
    Build an extensible match filter.

    Example:
        Exclude disabled Active Directory accounts:

        >>> disabled = extensible_match(
        ...     "2",
        ...     {"type": "userAccountControl", "matchingRule": "1.2.840.113556.1.4.803"},
        ... )
        >>> str(negate(disabled))
        '(!(userAccountControl:1.2.840.113556.1.4.803:=2))'

    Args:
        match_value: the assertion value
        match_attributes: ``type``, ``matchingRule`` and ``dnAttributes``, as a
            mapping or as ``(key, value)`` pairs

    Raises:
        ValueError: an unknown key was given, or neither ``type`` nor
            ``matchingRule`` was.

    Returns:
        The extensible match filter.

    """
    if isinstance(match_attributes, Mapping):
        match_attributes = match_attributes.items()
    return ExtensibleMatch(match_value, tuple(match_attributes))


def with_and(filters: Iterable[Filter]) -> And:
    """Combine ``filters`` in a boolean AND."""
    return And(tuple(filters))


def with_or(filters: Iterable[Filter]) -> Or:
    """Combine ``filters`` in a boolean OR."""
    return Or(tuple(filters))


def negate(search_filter: Filter) -> Not:
    """Negate ``search_filter``."""
    return Not(search_filter)
