"""
A small facade over python-ldap: open and bind sessions, build search filters,
run whole-subtree searches, read attributes off the resulting entries, and
convert Microsoft SIDs between their binary and string forms.
"""

from .conf import LdapConfig
from .entry import Entry, SearchResult, get_attribute, get_raw_attribute
from .exceptions import (
    BindError,
    InvalidCredentials,
    InvalidSidString,
    LdapConnectionError,
    LdapFacadeError,
    MalformedSid,
    SearchError,
    SessionClosed,
    SidError,
    SubAuthorityOverflow,
)
from .filters import (
    And,
    ApproxMatch,
    Equality,
    ExtensibleMatch,
    Filter,
    GreaterOrEqual,
    LessOrEqual,
    Not,
    Or,
    Present,
    Substring,
    SubstringPart,
    SubstringPosition,
    approx_match,
    equality_match,
    extensible_match,
    greater_or_equal,
    less_or_equal,
    negate,
    present,
    substrings,
    with_and,
    with_or,
)
from .search import search, search_field, search_substring, search_with_filter
from .session import (
    Session,
    bind,
    close,
    connect,
    connect_from_settings,
    open_connection,
    open_from_settings,
    verify_credentials,
)
from .sid import Sid, sid_to_string, string_to_sid

__version__ = "1.0.0"

__all__ = [
    "And",
    "ApproxMatch",
    "BindError",
    "Entry",
    "Equality",
    "ExtensibleMatch",
    "Filter",
    "GreaterOrEqual",
    "InvalidCredentials",
    "InvalidSidString",
    "LdapConfig",
    "LdapConnectionError",
    "LdapFacadeError",
    "LessOrEqual",
    "MalformedSid",
    "Not",
    "Or",
    "Present",
    "SearchError",
    "SearchResult",
    "Session",
    "SessionClosed",
    "Sid",
    "SidError",
    "SubAuthorityOverflow",
    "Substring",
    "SubstringPart",
    "SubstringPosition",
    "approx_match",
    "bind",
    "close",
    "connect",
    "connect_from_settings",
    "equality_match",
    "extensible_match",
    "get_attribute",
    "get_raw_attribute",
    "greater_or_equal",
    "less_or_equal",
    "negate",
    "open_connection",
    "open_from_settings",
    "present",
    "search",
    "search_field",
    "search_substring",
    "search_with_filter",
    "sid_to_string",
    "string_to_sid",
    "substrings",
    "verify_credentials",
    "with_and",
    "with_or",
]
