"""
Directory entries returned by :func:`ldapfacade.search.search`.
"""

from dataclasses import dataclass, field

from .typing import AttributeResult, AttributeValue, RawAttributeResult, RawAttributes


@dataclass
class Entry:
    """
    One directory record.

    Attribute names are kept exactly as the server returned them (lookups are
    case-sensitive) and values are the raw ``bytes`` in server order.
    """

    #: The distinguished name of the entry.
    dn: str
    #: Attribute name to raw values.
    attributes: RawAttributes = field(default_factory=dict)

    @classmethod
    def from_ldap(cls, dn: str, attrs: RawAttributes) -> "Entry":
        """
        Build an :class:`Entry` from one ``(dn, attrs)`` tuple returned by
        python-ldap.
        """
        return cls(dn=dn, attributes={name: list(values) for name, values in attrs.items()})

    def get_attribute(self, key: str) -> AttributeResult:
        """Shortcut for :func:`get_attribute` on this entry."""
        return get_attribute(self, key)

    def get_raw_attribute(self, key: str) -> RawAttributeResult:
        """Shortcut for :func:`get_raw_attribute` on this entry."""
        return get_raw_attribute(self, key)


#: The result of a search: entries in the order the server sent them.
SearchResult = list[Entry]


def _decode(value: bytes | str) -> AttributeValue:
    if isinstance(value, str):
        return value
    try:
        return value.decode("utf-8")
    except UnicodeDecodeError:
        # binary attributes like objectSid and objectGUID
        return bytes(value)


def get_attribute(entry: Entry, key: str) -> AttributeResult:
    """
    Look up attribute ``key`` on ``entry``.

    Values are decoded as UTF-8; a value that is not valid UTF-8 is returned
    as ``bytes``.  Whether a binary value happens to decode depends on its
    content, so read binary attributes like ``objectSid`` with
    :func:`get_raw_attribute` instead.

    Example:
        >>> entry = Entry("cn=a,dc=example,dc=com", {"cn": [b"a"], "mail": [b"x", b"y"]})
        >>> get_attribute(entry, "cn")
        'a'
        >>> get_attribute(entry, "mail")
        ['x', 'y']
        >>> get_attribute(entry, "sn") is None
        True

    Args:
        entry: the entry to look in
        key: the attribute name, matched case-sensitively

    Returns:
        ``None`` if the attribute is absent, the value itself if it has
        exactly one value, otherwise the list of values.

    """
    values = entry.attributes.get(key)
    if values is None:
        return None
    decoded = [_decode(value) for value in values]
    if len(decoded) == 1:
        return decoded[0]
    return decoded


def get_raw_attribute(entry: Entry, key: str) -> RawAttributeResult:
    """
    Look up attribute ``key`` on ``entry`` without decoding anything.

    Use this for binary attributes::

        >>> sid_to_string(get_raw_attribute(entry, "objectSid"))  # doctest: +SKIP
        'S-1-5-32-544'

    Returns:
        ``None`` if the attribute is absent, the raw value if it has exactly
        one value, otherwise the list of raw values.

    """
    values = entry.attributes.get(key)
    if values is None:
        return None
    raw = [
        value.encode("utf-8") if isinstance(value, str) else bytes(value)
        for value in values
    ]
    if len(raw) == 1:
        return raw[0]
    return raw
