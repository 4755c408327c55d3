"""
Exceptions raised by the LDAP facade.

Failures reported by python-ldap are translated into the classes below with
``raise ... from exc`` so the original exception stays reachable through
``__cause__``.  The directory server's own description of the failure is kept
verbatim on :attr:`LdapFacadeError.reason`.
"""

from typing import Any


class LdapFacadeError(Exception):
    """
    Base class for every error raised by :mod:`ldapfacade`.

    Args:
        message: Human readable description of the failure.

    Keyword Args:
        reason: The ``desc`` reported by python-ldap, if any.
        info: The ``info`` reported by python-ldap, if any.
        result: The raw result dictionary python-ldap attached to its exception.

    """

    def __init__(
        self,
        message: str,
        reason: str | None = None,
        info: str | None = None,
        result: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.reason = reason if reason is not None else message
        self.info = info
        self.result = result or {}

    @classmethod
    def from_ldap_error(cls, exc: Exception, prefix: str = "") -> "LdapFacadeError":
        """
        Build an instance of ``cls`` from a python-ldap exception.

        python-ldap exceptions carry a dictionary as their first argument with
        ``desc`` and (usually) ``info`` keys.  Anything else is stringified.

        Args:
            exc: The python-ldap exception.

        Keyword Args:
            prefix: Text to put in front of the message.

        Returns:
            A new exception of type ``cls``.

        """
        result: dict[str, Any] = {}
        if exc.args and isinstance(exc.args[0], dict):
            result = dict(exc.args[0])
        reason = str(result.get("desc", "")) or str(exc) or exc.__class__.__name__
        info = result.get("info") or None
        message = reason if not info else f"{reason}: {info}"
        if prefix:
            message = f"{prefix}: {message}"
        return cls(message, reason=reason, info=info, result=result)


class LdapConnectionError(LdapFacadeError):
    """Raised when the transport to the directory server fails."""


class InvalidCredentials(LdapFacadeError):
    """Raised when the directory server rejects a simple bind."""


class BindError(LdapFacadeError):
    """Raised when a simple bind fails for any reason other than bad credentials."""


class SearchError(LdapFacadeError):
    """Raised when the directory server reports a failed search."""


class SessionClosed(LdapFacadeError):
    """Raised when a :class:`~ldapfacade.session.Session` is used after close."""


class SidError(LdapFacadeError, ValueError):
    """Base class for security identifier codec errors."""


class MalformedSid(SidError):
    """Raised when a binary SID does not match its declared layout."""


class InvalidSidString(SidError):
    """Raised when a textual SID does not match ``S-R-A-S1-...-Sn``."""


class SubAuthorityOverflow(SidError):
    """Raised when a sub-authority does not fit in an unsigned 32 bit integer."""
