"""
Connection settings.

Everything in :mod:`ldapfacade` takes its settings as explicit arguments or as
an :class:`LdapConfig`.  :meth:`LdapConfig.from_settings` is the one place that
reads Django settings, from a dict named ``LDAP_FACADE``::

    LDAP_FACADE = {
        "server": "dc1.example.com",
        "port": 636,
        "ssl": True,
        "user_dn": "CN=svc-ldap,OU=Accounts,DC=example,DC=com",
        "password": "...",
        "base": "OU=Accounts,DC=example,DC=com",
        "search_timeout": 5000,
    }
"""

from dataclasses import dataclass, field, fields
from typing import Any

from django.conf import settings
from django.core.exceptions import ImproperlyConfigured

#: Name of the Django setting :meth:`LdapConfig.from_settings` reads.
SETTING_NAME = "LDAP_FACADE"


@dataclass
class LdapConfig:
    """
    Everything needed to open, bind and search a directory server.

    Timeouts are in milliseconds.  A ``timeout`` of ``None`` means "wait
    forever" when connecting; a ``search_timeout`` of ``0`` means the same
    for searches.
    """

    #: Hostname of the directory server.
    server: str
    #: TCP port.
    port: int = 389
    #: Use ``ldaps://`` instead of ``ldap://``.
    ssl: bool = False
    #: DN to bind as.
    user_dn: str | None = None
    #: Password for ``user_dn``.
    password: str | None = field(default=None, repr=False)
    #: Default search base.
    base: str | None = None
    #: Default search timeout.
    search_timeout: int = 0
    #: Network timeout for the connection.
    timeout: int | None = None
    #: Issue StartTLS after opening a plain ``ldap://`` connection.
    use_starttls: bool = False
    #: ``"never"`` or ``"always"`` verify the server certificate.
    tls_verify: str = "never"
    #: Path to a CA bundle used to verify the server certificate.
    tls_ca_certfile: str | None = None
    #: Let the client library chase referrals.
    follow_referrals: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "LdapConfig":
        """
        Build an :class:`LdapConfig` from a plain dict.

        Raises:
            ImproperlyConfigured: ``server`` is missing or an unknown key is
                present.

        """
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            msg = f"settings.{SETTING_NAME} has unknown keys: {', '.join(unknown)}"
            raise ImproperlyConfigured(msg)
        if not data.get("server"):
            msg = f"settings.{SETTING_NAME} has no 'server' key"
            raise ImproperlyConfigured(msg)
        config = cls(**data)
        if config.search_timeout is None:
            config.search_timeout = 0
        return config

    @classmethod
    def from_settings(cls) -> "LdapConfig":
        """
        Build an :class:`LdapConfig` from ``settings.LDAP_FACADE``.

        Raises:
            ImproperlyConfigured: the setting does not exist or is incomplete.

        """
        try:
            data = getattr(settings, SETTING_NAME)
        except AttributeError as e:
            msg = f"settings.{SETTING_NAME} does not exist!"
            raise ImproperlyConfigured(msg) from e
        return cls.from_dict(dict(data))

    @property
    def connection_options(self) -> dict[str, Any]:
        """
        The keyword arguments :func:`ldapfacade.session.open_connection`
        accepts besides server, port, TLS and timeout.
        """
        return {
            "use_starttls": self.use_starttls,
            "tls_verify": self.tls_verify,
            "tls_ca_certfile": self.tls_ca_certfile,
            "follow_referrals": self.follow_referrals,
        }


def get_search_timeout(default: int = 0) -> int:
    """
    Return ``search_timeout`` from ``settings.LDAP_FACADE``, or ``default``
    when Django is not configured or the setting is absent.
    """
    if not settings.configured:
        return default
    data = getattr(settings, SETTING_NAME, None) or {}
    return int(data.get("search_timeout") or default)
