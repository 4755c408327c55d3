# This module re-exports python-ldap so that tests can patch
# ``ldapfacade.ldap.initialize`` with python-ldap-faker without touching the
# real ``ldap`` module.
import ldap
from ldap import *  # noqa: F403

__version__ = ldap.__version__
