# mypy: disable-error-code="attr-defined"
"""
Tests for the search functions.

Filter semantics are checked against python-ldap-faker; the python-ldap call
details and failure paths use a mocked connection.
"""

import unittest
from unittest.mock import MagicMock, patch

import ldap
from django.conf import settings
from ldap_faker.unittest import LDAPFakerMixin

from ldapfacade.conf import LdapConfig
from ldapfacade.entry import Entry, get_attribute
from ldapfacade.exceptions import LdapConnectionError, SearchError, SessionClosed
from ldapfacade.filters import (
    equality_match,
    negate,
    present,
    substrings,
    with_and,
    with_or,
)
from ldapfacade.search import search, search_field, search_substring, search_with_filter
from ldapfacade.session import Session, connect, connect_from_settings

LDAP_FACADE = {
    "server": "localhost",
    "port": 389,
    "ssl": False,
    "user_dn": "cn=admin,dc=example,dc=com",
    "password": "admin",
    "base": "ou=accounts,dc=example,dc=com",
    "search_timeout": 0,
}

if not settings.configured:
    settings.configure(LDAP_FACADE=LDAP_FACADE)


BASE = "ou=accounts,dc=example,dc=com"


def dns(entries):
    return sorted(entry.dn.lower() for entry in entries)


class TestSearchWithFaker(LDAPFakerMixin, unittest.TestCase):
    """Searches against python-ldap-faker."""

    ldap_modules = ["ldapfacade"]

    @classmethod
    def setUpClass(cls):
        super().setUpClass()
        cls.test_objects = [
            (
                "cn=admin,dc=example,dc=com",
                {
                    "cn": [b"admin"],
                    "userPassword": [b"admin"],
                    "objectclass": [b"simpleSecurityObject", b"organizationalRole", b"top"],
                },
            ),
            (
                "cn=useraccount,ou=accounts,dc=example,dc=com",
                {
                    "cn": [b"useraccount"],
                    "givenName": [b"Test"],
                    "sn": [b"User123"],
                    "mail": [b"useraccount@example.com", b"test.user@example.com"],
                    "userPassword": [b"password"],
                    "objectclass": [b"person", b"top"],
                },
            ),
            (
                "cn=jsmith,ou=accounts,dc=example,dc=com",
                {
                    "cn": [b"jsmith"],
                    "givenName": [b"John"],
                    "sn": [b"Smith"],
                    "mail": [b"jsmith@example.com"],
                    "userPassword": [b"password"],
                    "objectclass": [b"person", b"top"],
                },
            ),
            (
                "cn=asmithers,ou=accounts,dc=example,dc=com",
                {
                    "cn": [b"asmithers"],
                    "givenName": [b"Tester"],
                    "sn": [b"Smithers"],
                    "userPassword": [b"password"],
                    "objectclass": [b"person", b"top"],
                },
            ),
        ]

    def setUp(self):
        super().setUp()
        if not hasattr(self, "ldap_faker"):
            LDAPFakerMixin.setUp(self)
        self.settings_patcher = patch("django.conf.settings.LDAP_FACADE", dict(LDAP_FACADE))
        self.settings_patcher.start()
        self.server_factory.default.raw_objects.clear()  # type: ignore[attr-defined]
        self.server_factory.default.objects.clear()  # type: ignore[attr-defined]
        for dn, attrs in self.test_objects:
            self.server_factory.default.register_object((dn, attrs))  # type: ignore[attr-defined]
        self.session = connect_from_settings()

    def tearDown(self):
        self.session.close()
        self.settings_patcher.stop()
        super().tearDown()

    def test_equality_search(self):
        """An equality search returns the one matching entry."""
        entries = search(self.session, BASE, equality_match("cn", "useraccount"))
        self.assertEqual(len(entries), 1)
        self.assertIsInstance(entries[0], Entry)
        self.assertEqual(get_attribute(entries[0], "cn"), "useraccount")
        self.assertEqual(
            get_attribute(entries[0], "mail"),
            ["useraccount@example.com", "test.user@example.com"],
        )

    def test_no_matches_is_an_empty_list(self):
        self.assertEqual(search(self.session, BASE, equality_match("cn", "nobody")), [])

    def test_search_covers_the_whole_subtree(self):
        entries = search(self.session, "dc=example,dc=com", present("cn"))
        self.assertEqual(len(entries), 4)

    def test_substring_initial(self):
        entries = search(self.session, BASE, substrings("sn", ("initial", "Smith")))
        self.assertEqual(
            dns(entries),
            [
                "cn=asmithers,ou=accounts,dc=example,dc=com",
                "cn=jsmith,ou=accounts,dc=example,dc=com",
            ],
        )

    def test_and(self):
        """Only entries matching every child come back."""
        first = substrings("givenName", [("any", "Test")])
        last = substrings("sn", [("any", "123")])
        entries = search(self.session, BASE, with_and([first, last]))
        self.assertEqual(dns(entries), ["cn=useraccount,ou=accounts,dc=example,dc=com"])

    def test_or(self):
        entries = search(
            self.session,
            BASE,
            with_or([equality_match("cn", "jsmith"), equality_match("cn", "asmithers")]),
        )
        self.assertEqual(
            dns(entries),
            [
                "cn=asmithers,ou=accounts,dc=example,dc=com",
                "cn=jsmith,ou=accounts,dc=example,dc=com",
            ],
        )

    def test_not(self):
        entries = search(
            self.session,
            BASE,
            with_and([present("cn"), negate(present("mail"))]),
        )
        self.assertEqual(dns(entries), ["cn=asmithers,ou=accounts,dc=example,dc=com"])

    def test_nested_and_matches_flat_and(self):
        """Regrouping an AND does not change what it matches."""
        a = present("givenName")
        b = substrings("givenName", ("initial", "Test"))
        c = present("mail")
        flat = search(self.session, BASE, with_and([a, b, c]))
        nested = search(self.session, BASE, with_and([with_and([a, b]), c]))
        self.assertEqual(dns(flat), dns(nested))
        self.assertEqual(dns(flat), ["cn=useraccount,ou=accounts,dc=example,dc=com"])

    def test_attributes_restrict_what_comes_back(self):
        entries = search(
            self.session, BASE, equality_match("cn", "jsmith"), attributes=["sn"]
        )
        self.assertEqual(list(entries[0].attributes), ["sn"])
        self.assertIsNone(get_attribute(entries[0], "cn"))

    def test_search_with_filter_uses_configured_base(self):
        entries = search_with_filter(self.session, equality_match("cn", "jsmith"))
        self.assertEqual(dns(entries), ["cn=jsmith,ou=accounts,dc=example,dc=com"])

    def test_search_field(self):
        entries = search_field(self.session, "cn", "useraccount", BASE)
        self.assertEqual(get_attribute(entries[0], "givenName"), "Test")

    def test_search_substring(self):
        entries = search_substring(self.session, "sn", ("initial", "Smi"))
        self.assertEqual(len(entries), 2)

    def test_search_substring_bare_string_matches_anywhere(self):
        entries = search_substring(self.session, "sn", "ither")
        self.assertEqual(dns(entries), ["cn=asmithers,ou=accounts,dc=example,dc=com"])

    def test_session_search_method(self):
        entries = self.session.search(BASE, equality_match("cn", "jsmith"))
        self.assertEqual(len(entries), 1)

    def test_search_without_config_reads_base_from_settings(self):
        """A session opened without a config falls back to settings.LDAP_FACADE."""
        session = connect("localhost", 389, False, "cn=admin,dc=example,dc=com", "admin")
        self.assertIsNone(session.config)
        entries = search_field(session, "cn", "jsmith")
        self.assertEqual(dns(entries), ["cn=jsmith,ou=accounts,dc=example,dc=com"])

    def test_search_without_any_base_raises_ValueError(self):
        session = connect("localhost", 389, False, "cn=admin,dc=example,dc=com", "admin")
        with patch("django.conf.settings.LDAP_FACADE", {"server": "localhost"}):
            with self.assertRaises(ValueError):
                search_field(session, "cn", "jsmith")

    def test_search_on_closed_session(self):
        self.session.close()
        with self.assertRaises(SessionClosed):
            search(self.session, BASE, present("cn"))


class TestSearchWithMock(unittest.TestCase):
    """python-ldap call details and failure paths."""

    def setUp(self):
        self.connection = MagicMock()
        self.connection.search_s.return_value = [
            (
                "CN=useraccount,OU=Accounts,DC=example,DC=com",
                {"cn": [b"useraccount"]},
            )
        ]
        self.connection.search_st.return_value = self.connection.search_s.return_value
        self.session = Session(self.connection, "ldap://dc1.example.com:389")

    def test_equality_search_returns_entry(self):
        """One raw record becomes one Entry with its attributes intact."""
        entries = search(
            self.session,
            "OU=Accounts,DC=example,DC=com",
            equality_match("cn", "useraccount"),
        )
        self.assertEqual(len(entries), 1)
        self.assertEqual(entries[0].dn, "CN=useraccount,OU=Accounts,DC=example,DC=com")
        self.assertEqual(get_attribute(entries[0], "cn"), "useraccount")

    def test_search_is_subtree_with_rendered_filter(self):
        search(
            self.session,
            "OU=Accounts,DC=example,DC=com",
            equality_match("cn", "useraccount"),
            attributes=["cn", "mail"],
        )
        self.connection.search_s.assert_called_once_with(
            "OU=Accounts,DC=example,DC=com",
            ldap.SCOPE_SUBTREE,
            filterstr="(cn=useraccount)",
            attrlist=["cn", "mail"],
        )
        self.connection.search_st.assert_not_called()

    def test_timeout_is_passed_in_seconds(self):
        """A millisecond timeout goes to search_st() in seconds."""
        search(
            self.session,
            "OU=Accounts,DC=example,DC=com",
            present("cn"),
            timeout=2500,
        )
        self.connection.search_st.assert_called_once_with(
            "OU=Accounts,DC=example,DC=com",
            ldap.SCOPE_SUBTREE,
            filterstr="(cn=*)",
            attrlist=None,
            timeout=2.5,
        )
        self.connection.search_s.assert_not_called()

    def test_negative_timeout_raises_ValueError(self):
        with self.assertRaises(ValueError):
            search(self.session, "DC=example,DC=com", present("cn"), timeout=-1)

    def test_non_filter_raises_TypeError(self):
        with self.assertRaises(TypeError):
            search(self.session, "DC=example,DC=com", "(cn=*)")  # type: ignore[arg-type]

    def test_referrals_are_dropped(self):
        """Active Directory referral records are not entries."""
        self.connection.search_s.return_value = [
            ("CN=useraccount,OU=Accounts,DC=example,DC=com", {"cn": [b"useraccount"]}),
            (None, ["ldap://ForestDnsZones.example.com/DC=ForestDnsZones,DC=example,DC=com"]),
        ]
        entries = search(self.session, "DC=example,DC=com", present("cn"))
        self.assertEqual(len(entries), 1)

    def test_server_error_raises_SearchError(self):
        self.connection.search_s.side_effect = ldap.NO_SUCH_OBJECT(
            {"desc": "No such object", "info": "0000208D: NameErr"}
        )
        with self.assertRaises(SearchError) as cm:
            search(self.session, "OU=Missing,DC=example,DC=com", present("cn"))
        self.assertEqual(cm.exception.reason, "No such object")
        self.assertIsInstance(cm.exception.__cause__, ldap.NO_SUCH_OBJECT)

    def test_timelimit_raises_SearchError(self):
        self.connection.search_st.side_effect = ldap.TIMELIMIT_EXCEEDED(
            {"desc": "Time limit exceeded"}
        )
        with self.assertRaises(SearchError):
            search(self.session, "DC=example,DC=com", present("cn"), timeout=10)

    def test_client_timeout_raises_SearchError(self):
        """search_st() running out of time is a failed search, not a lost server."""
        self.connection.search_st.side_effect = ldap.TIMEOUT({"desc": "Timed out"})
        with self.assertRaises(SearchError) as cm:
            search(self.session, "DC=example,DC=com", present("cn"), timeout=10)
        self.assertNotIsInstance(cm.exception, LdapConnectionError)
        self.assertEqual(cm.exception.reason, "Timed out")

    def test_connect_error_raises_LdapConnectionError(self):
        self.connection.search_s.side_effect = ldap.CONNECT_ERROR({"desc": "Connect error"})
        with self.assertRaises(LdapConnectionError):
            search(self.session, "DC=example,DC=com", present("cn"))

    def test_server_down_raises_LdapConnectionError(self):
        self.connection.search_s.side_effect = ldap.SERVER_DOWN(
            {"desc": "Can't contact LDAP server"}
        )
        with self.assertLogs("ldapfacade.search", level="WARNING"):
            with self.assertRaises(LdapConnectionError):
                search(self.session, "DC=example,DC=com", present("cn"))

    def test_defaults_come_from_session_config(self):
        """search_with_filter() takes base and timeout from the session's config."""
        self.session.config = LdapConfig(
            server="dc1.example.com",
            base="OU=Accounts,DC=example,DC=com",
            search_timeout=3000,
        )
        search_with_filter(self.session, present("cn"))
        args, kwargs = self.connection.search_st.call_args
        self.assertEqual(args[0], "OU=Accounts,DC=example,DC=com")
        self.assertEqual(kwargs["timeout"], 3.0)

    def test_explicit_arguments_win_over_config(self):
        self.session.config = LdapConfig(
            server="dc1.example.com",
            base="OU=Accounts,DC=example,DC=com",
            search_timeout=3000,
        )
        search_with_filter(
            self.session, present("cn"), base="OU=Groups,DC=example,DC=com", timeout=0
        )
        self.connection.search_s.assert_called_once()
        self.assertEqual(
            self.connection.search_s.call_args[0][0], "OU=Groups,DC=example,DC=com"
        )

    def test_timeout_default_from_settings(self):
        """Without a session config the search timeout comes from settings."""
        with patch(
            "django.conf.settings.LDAP_FACADE",
            dict(LDAP_FACADE, search_timeout=1000),
        ):
            search_field(self.session, "cn", "useraccount", "DC=example,DC=com")
        self.assertEqual(self.connection.search_st.call_args[1]["timeout"], 1.0)

    def test_search_field_on_binary_value(self):
        sid = b"\x01\x01\x00\x00\x00\x00\x00\x05\x12\x00\x00\x00"
        search_field(self.session, "objectSid", sid, "DC=example,DC=com", timeout=0)
        self.assertEqual(
            self.connection.search_s.call_args[1]["filterstr"],
            "(objectSid=\\01\\01\\00\\00\\00\\00\\00\\05\\12\\00\\00\\00)",
        )
