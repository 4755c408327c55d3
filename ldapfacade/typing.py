"""
LDAP facade type definitions.

Type aliases for the raw data python-ldap hands back from a search and for the
values :func:`ldapfacade.entry.get_attribute` and
:func:`ldapfacade.entry.get_raw_attribute` return.
"""

RawAttributes = dict[str, list[bytes]]
LDAPData = tuple[str, RawAttributes]
AttributeValue = str | bytes
AttributeResult = AttributeValue | list[AttributeValue] | None
RawAttributeResult = bytes | list[bytes] | None
FilterValue = str | bytes
