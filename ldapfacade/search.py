"""
Searching a directory.

:func:`search` is the primitive: it runs one whole-subtree search and maps the
python-ldap result onto :class:`~ldapfacade.entry.Entry` objects.  The other
functions are shortcuts that build the filter for you and take their search
base and timeout from the session's config (or ``settings.LDAP_FACADE``) when
you leave them out.
"""

import logging
from typing import Any

from ldapfacade import ldap

from .conf import LdapConfig, get_search_timeout
from .entry import Entry, SearchResult
from .exceptions import LdapConnectionError, SearchError
from .filters import Filter, equality_match, substrings
from .session import Session
from .typing import FilterValue

logger = logging.getLogger(__name__)

#: python-ldap exceptions that mean the server went away mid-search.  A
#: client-side ``ldap.TIMEOUT`` from ``search_st`` is a failed search, not a
#: lost connection.
SEARCH_CONNECTION_ERRORS = (ldap.SERVER_DOWN, ldap.CONNECT_ERROR)  # type: ignore[attr-defined]


def search(
    session: Session,
    base: str,
    search_filter: Filter,
    timeout: int = 0,
    attributes: list[str] | None = None,
) -> SearchResult:
    """
    Search the whole subtree under ``base`` for entries matching
    ``search_filter``.

    Args:
        session: a bound session
        base: the DN to search under
        search_filter: the filter to apply
        timeout: search timeout in milliseconds; ``0`` means no timeout
        attributes: attributes to return; ``None`` returns them all

    Raises:
        SearchError: the server reported a failure, or ``timeout`` ran out.
        LdapConnectionError: the server could not be reached.
        SessionClosed: ``session`` has been closed.
        ValueError: ``timeout`` is negative.
        TypeError: ``search_filter`` is not a :class:`~ldapfacade.filters.Filter`.

    Returns:
        The matching entries, in the order the server returned them.

    """
    if timeout < 0:
        msg = f"timeout must be a non-negative number of milliseconds: {timeout}"
        raise ValueError(msg)
    if not isinstance(search_filter, Filter):
        msg = f"search_filter must be a Filter, not {type(search_filter).__name__}"
        raise TypeError(msg)
    filterstr = search_filter.to_string()
    connection = session.connection
    logger.debug(
        "ldapfacade.search base=%s filter=%s timeout=%s", base, filterstr, timeout
    )
    try:
        if timeout:
            data = connection.search_st(
                base,
                ldap.SCOPE_SUBTREE,  # type: ignore[attr-defined]
                filterstr=filterstr,
                attrlist=attributes,
                timeout=timeout / 1000,
            )
        else:
            data = connection.search_s(
                base,
                ldap.SCOPE_SUBTREE,  # type: ignore[attr-defined]
                filterstr=filterstr,
                attrlist=attributes,
            )
    except SEARCH_CONNECTION_ERRORS as e:
        logger.warning("ldapfacade.search.server_down url=%s error=%s", session.url, e)
        raise LdapConnectionError.from_ldap_error(e) from e
    except ldap.LDAPError as e:  # type: ignore[attr-defined]
        logger.warning(
            "ldapfacade.search.failed base=%s filter=%s error=%s", base, filterstr, e
        )
        raise SearchError.from_ldap_error(e) from e
    # Active Directory appends referrals whose attrs are a list, not a dict
    entries = [Entry.from_ldap(dn, attrs) for dn, attrs in data if isinstance(attrs, dict)]
    logger.debug("ldapfacade.search.done base=%s count=%d", base, len(entries))
    return entries


def _search_defaults(
    session: Session, base: str | None, timeout: int | None
) -> tuple[str, int]:
    """
    Fill in a missing search base and timeout from the session's config, or
    from ``settings.LDAP_FACADE`` when the session has none.

    Raises:
        ValueError: no base was given and none is configured.

    """
    config = session.config
    if base is None:
        if config is None:
            config = LdapConfig.from_settings()
        base = config.base
        if not base:
            msg = "base is required either as a parameter or in the LDAP config"
            raise ValueError(msg)
    if timeout is None:
        timeout = config.search_timeout if config is not None else get_search_timeout()
    return base, timeout


def search_with_filter(
    session: Session,
    search_filter: Filter,
    base: str | None = None,
    timeout: int | None = None,
) -> SearchResult:
    """
    :func:`search` with the base and timeout defaulted from configuration.

    Example:
        >>> first = substrings("givenName", [("any", "test")])
        >>> last = substrings("sn", [("any", "123")])
        >>> search_with_filter(session, with_and([first, last]))  # doctest: +SKIP

    """
    base, timeout = _search_defaults(session, base, timeout)
    return search(session, base, search_filter, timeout=timeout)


def search_field(
    session: Session,
    field: str,
    value: FilterValue,
    base: str | None = None,
    timeout: int | None = None,
) -> SearchResult:
    """
    Find entries whose ``field`` equals ``value``.

    Example:
        >>> search_field(session, "cn", "useraccount", "OU=Accounts,DC=example,DC=com")  # doctest: +SKIP

    """
    return search_with_filter(
        session, equality_match(field, value), base=base, timeout=timeout
    )


def search_substring(
    session: Session,
    field: str,
    substring: Any,
    base: str | None = None,
    timeout: int | None = None,
) -> SearchResult:
    """
    Find entries whose ``field`` matches a substring pattern.

    ``substring`` is anything :func:`~ldapfacade.filters.substrings` accepts.
    A bare string means ``("any", substring)``, so to find everyone whose last
    name starts with "smi" pass ``("initial", "smi")``.

    Example:
        >>> search_substring(session, "sn", ("initial", "smi"))  # doctest: +SKIP
        >>> search_substring(session, "sn", "middle")  # doctest: +SKIP

    """
    return search_with_filter(
        session, substrings(field, substring), base=base, timeout=timeout
    )
