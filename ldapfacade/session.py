"""
Directory sessions.

A :class:`Session` wraps one python-ldap connection.  It is created by
:func:`open_connection`, authenticated by :func:`bind` and destroyed by
:func:`close`; :func:`connect` does the first two in one go.  Once closed, a
session refuses to be used again.

Sessions are not thread-safe.  Give each thread its own.
"""

import logging
from contextlib import suppress
from pathlib import Path
from typing import TYPE_CHECKING, Any

from ldapfacade import ldap

from .conf import LdapConfig
from .exceptions import (
    BindError,
    InvalidCredentials,
    LdapConnectionError,
    LdapFacadeError,
    SessionClosed,
)

if TYPE_CHECKING:
    from .entry import SearchResult
    from .filters import Filter

logger = logging.getLogger(__name__)

#: python-ldap exceptions that mean we lost (or never had) the server.
CONNECTION_ERRORS = (ldap.SERVER_DOWN, ldap.CONNECT_ERROR, ldap.TIMEOUT)  # type: ignore[attr-defined]


class Session:
    """
    An open connection to a directory server.

    Args:
        connection: the python-ldap ``LDAPObject``
        url: the URL the connection was opened against

    Keyword Args:
        config: the :class:`~ldapfacade.conf.LdapConfig` the session was
            opened from, if any.  The search helpers take their default base
            and timeout from it.

    """

    def __init__(
        self,
        connection: ldap.ldapobject.LDAPObject,  # type: ignore[name-defined]
        url: str,
        config: LdapConfig | None = None,
    ) -> None:
        self._connection = connection
        self.url = url
        self.config = config
        #: The DN of the last successful bind.
        self.bound_dn: str | None = None
        #: Set by :meth:`close`.
        self.closed: bool = False

    @property
    def connection(self) -> ldap.ldapobject.LDAPObject:  # type: ignore[name-defined]
        """
        The underlying python-ldap object.

        Raises:
            SessionClosed: the session has been closed.

        """
        if self.closed:
            msg = f"Session to {self.url} has been closed"
            raise SessionClosed(msg)
        return self._connection

    def bind(self, user_dn: str, password: str) -> None:
        """Same as :func:`bind` on this session."""
        bind(self, user_dn, password)

    def close(self) -> None:
        """Same as :func:`close` on this session."""
        close(self)

    def search(
        self,
        base: str,
        search_filter: "Filter",
        timeout: int = 0,
        attributes: list[str] | None = None,
    ) -> "SearchResult":
        """Same as :func:`ldapfacade.search.search` on this session."""
        from .search import search

        return search(self, base, search_filter, timeout=timeout, attributes=attributes)

    def __enter__(self) -> "Session":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def __repr__(self) -> str:
        state = "closed" if self.closed else "open"
        return f"<Session {self.url} {state} bound_dn={self.bound_dn!r}>"


def _set_tls_options(
    ldap_object: ldap.ldapobject.LDAPObject,  # type: ignore[name-defined]
    tls_verify: str,
    tls_ca_certfile: str | None,
) -> None:
    if tls_verify == "never":
        ldap_object.set_option(ldap.OPT_X_TLS_REQUIRE_CERT, ldap.OPT_X_TLS_NEVER)  # type: ignore[attr-defined]
    elif tls_verify == "always":
        ldap_object.set_option(ldap.OPT_X_TLS_REQUIRE_CERT, ldap.OPT_X_TLS_DEMAND)  # type: ignore[attr-defined]
    else:
        msg = f"Invalid tls_verify value: {tls_verify}"
        raise ValueError(msg)
    if tls_ca_certfile:
        ca_certfile = Path(tls_ca_certfile)
        if not ca_certfile.exists():
            msg = f"CA Certificate file does not exist: {tls_ca_certfile}"
            raise OSError(msg)
        if not ca_certfile.is_file():
            msg = f"CA Certificate file is not a file: {tls_ca_certfile}"
            raise OSError(msg)
        ldap_object.set_option(ldap.OPT_X_TLS_CACERTFILE, tls_ca_certfile)  # type: ignore[attr-defined]
    ldap_object.set_option(ldap.OPT_X_TLS_NEWCTX, 0)  # type: ignore[attr-defined]


def open_connection(  # noqa: PLR0913
    server: str,
    port: int,
    use_tls: bool = False,  # noqa: FBT001, FBT002
    timeout: int | None = None,
    *,
    use_starttls: bool = False,
    tls_verify: str = "never",
    tls_ca_certfile: str | None = None,
    follow_referrals: bool = False,
    config: LdapConfig | None = None,
) -> Session:
    """
    Open a connection to a directory server without binding.

    Args:
        server: hostname of the directory server
        port: TCP port
        use_tls: connect with ``ldaps://`` instead of ``ldap://``
        timeout: network timeout in milliseconds.  ``None`` means no timeout:
            the option is not set at all, so python-ldap waits forever.

    Keyword Args:
        use_starttls: issue StartTLS once the connection is open
        tls_verify: ``"never"`` or ``"always"`` verify the server certificate
        tls_ca_certfile: CA bundle to verify the server certificate against
        follow_referrals: let python-ldap chase referrals
        config: remembered on the session for the search helpers

    Raises:
        LdapConnectionError: python-ldap could not open the connection.
        ValueError: ``tls_verify`` is invalid or ``timeout`` is negative.
        OSError: ``tls_ca_certfile`` does not exist or is not a file.

    Returns:
        An unauthenticated :class:`Session`.

    """
    if timeout is not None and timeout < 0:
        msg = f"timeout must be a non-negative number of milliseconds: {timeout}"
        raise ValueError(msg)
    scheme = "ldaps" if use_tls else "ldap"
    url = f"{scheme}://{server}:{port}"
    try:
        ldap_object = ldap.initialize(url)
        ldap_object.set_option(ldap.OPT_REFERRALS, 1 if follow_referrals else 0)  # type: ignore[attr-defined]
        if timeout is not None:
            ldap_object.set_option(ldap.OPT_NETWORK_TIMEOUT, timeout / 1000)  # type: ignore[attr-defined]
        _set_tls_options(ldap_object, tls_verify, tls_ca_certfile)
        if use_starttls:
            ldap_object.start_tls_s()
    except ldap.LDAPError as e:  # type: ignore[attr-defined]
        logger.warning("ldapfacade.session.open.failed url=%s error=%s", url, e)
        raise LdapConnectionError.from_ldap_error(e) from e
    logger.debug("ldapfacade.session.open url=%s timeout=%s", url, timeout)
    return Session(ldap_object, url, config=config)


def bind(session: Session, user_dn: str, password: str) -> None:
    """
    Authenticate ``session`` with a simple bind.

    Args:
        session: an open session
        user_dn: the DN to bind as
        password: the password for ``user_dn``

    Raises:
        InvalidCredentials: the server rejected ``user_dn``/``password``.
        LdapConnectionError: the server could not be reached.
        BindError: the bind failed for any other reason.
        SessionClosed: ``session`` has been closed.

    """
    connection = session.connection
    try:
        connection.simple_bind_s(user_dn, password)
    except ldap.INVALID_CREDENTIALS as e:  # type: ignore[attr-defined]
        logger.warning("ldapfacade.session.bind.invalid_credentials dn=%s", user_dn)
        raise InvalidCredentials.from_ldap_error(e) from e
    except CONNECTION_ERRORS as e:
        logger.warning(
            "ldapfacade.session.bind.server_down url=%s error=%s", session.url, e
        )
        raise LdapConnectionError.from_ldap_error(e) from e
    except ldap.LDAPError as e:  # type: ignore[attr-defined]
        logger.warning("ldapfacade.session.bind.failed dn=%s error=%s", user_dn, e)
        raise BindError.from_ldap_error(e) from e
    session.bound_dn = user_dn
    logger.info("ldapfacade.session.bind.success dn=%s", user_dn)


#: Alias kept for callers that think of a bind as a credential check.
verify_credentials = bind


def connect(  # noqa: PLR0913
    server: str,
    port: int,
    use_tls: bool,  # noqa: FBT001
    user_dn: str,
    password: str,
    timeout: int | None = None,
    **options: Any,
) -> Session:
    """
    Open a connection and bind it.

    If the bind fails the freshly opened connection is closed before the bind
    error is re-raised, so nothing leaks.

    Args:
        server: hostname of the directory server
        port: TCP port
        use_tls: connect with ``ldaps://``
        user_dn: the DN to bind as
        password: the password for ``user_dn``
        timeout: network timeout in milliseconds, ``None`` for none
        **options: passed on to :func:`open_connection`

    Raises:
        LdapConnectionError: the connection could not be opened.
        InvalidCredentials: the server rejected the credentials.
        BindError: the bind failed for another reason.

    Returns:
        A bound :class:`Session`.

    """
    session = open_connection(server, port, use_tls, timeout, **options)
    try:
        bind(session, user_dn, password)
    except LdapFacadeError:
        with suppress(LdapConnectionError):
            close(session)
        raise
    return session


def open_from_settings(
    timeout: int | None = None, config: LdapConfig | None = None
) -> Session:
    """
    :func:`open_connection` using ``config``, or ``settings.LDAP_FACADE``
    when no config is given.  ``timeout`` overrides ``config.timeout``.
    """
    if config is None:
        config = LdapConfig.from_settings()
    if timeout is None:
        timeout = config.timeout
    return open_connection(
        config.server,
        config.port,
        config.ssl,
        timeout,
        config=config,
        **config.connection_options,
    )


def connect_from_settings(
    timeout: int | None = None, config: LdapConfig | None = None
) -> Session:
    """
    :func:`connect` using ``config``, or ``settings.LDAP_FACADE`` when no
    config is given.  ``timeout`` overrides ``config.timeout``.
    """
    if config is None:
        config = LdapConfig.from_settings()
    if timeout is None:
        timeout = config.timeout
    return connect(
        config.server,
        config.port,
        config.ssl,
        config.user_dn or "",
        config.password or "",
        timeout,
        config=config,
        **config.connection_options,
    )


def close(session: Session) -> None:
    """
    Unbind and close ``session``.  Closing a closed session does nothing.

    Raises:
        LdapConnectionError: python-ldap reported an error while unbinding.
            The session is closed regardless.

    """
    if session.closed:
        return
    connection = session.connection
    session.closed = True
    try:
        connection.unbind_s()
    except ldap.LDAPError as e:  # type: ignore[attr-defined]
        logger.warning("ldapfacade.session.close.failed url=%s error=%s", session.url, e)
        raise LdapConnectionError.from_ldap_error(e) from e
    logger.debug("ldapfacade.session.close url=%s", session.url)
