"""Unit tests for core/upstream.py -- ShadowdHost requests and ShadowdUpstream.

Covers:
- Address validation and URL shaping
- Status mapping (200 / 404 / 204 / other / transport error)
- The double hash read and its break-in warning
- Token enumeration, rotation requests, SSH key parsing
- Alive-host snapshots
"""

import logging

import pytest
import requests
from conftest import FakeResponse, FakeSession, ok

from core.errors import ErrorKind, HostFailureError, InvalidAddressError, NoHostsLeftError, NotFoundError
from core.models import SSHKey
from core.upstream import ShadowdHost, ShadowdUpstream

# ---------------------------------------------------------------------------
# TestShadowdHost
# ---------------------------------------------------------------------------


class TestShadowdHost:
    def test_url_address_rejected(self):
        with pytest.raises(InvalidAddressError) as exc_info:
            ShadowdHost("https://shadowd:443", FakeSession())
        assert exc_info.value.kind == ErrorKind.INVALID_ADDRESS

    def test_new_host_is_alive(self):
        host = ShadowdHost("shadowd:443", FakeSession())
        assert host.alive is True
        host.mark_dead()
        assert host.alive is False

    def test_url_always_https(self):
        host = ShadowdHost("shadowd:8443", FakeSession())
        assert host.url("t", "team1/alice") == "https://shadowd:8443/t/team1/alice"

    def test_payload_trailing_newlines_trimmed(self):
        session = FakeSession({("GET", "https://a/t/alice"): ok("$6$x$y\n\n")})
        assert ShadowdHost("a", session).get_hash("alice") == "$6$x$y"

    @pytest.mark.parametrize("status", [404, 204])
    def test_not_found_statuses(self, status):
        session = FakeSession({("GET", "https://a/t/alice"): FakeResponse(status)})
        with pytest.raises(NotFoundError) as exc_info:
            ShadowdHost("a", session).get_hash("alice")
        assert exc_info.value.kind == ErrorKind.NOT_FOUND
        assert exc_info.value.address == "a"

    @pytest.mark.parametrize("status", [500, 502, 403, 301])
    def test_other_statuses_are_host_failures(self, status):
        session = FakeSession({("GET", "https://a/t/alice"): FakeResponse(status)})
        with pytest.raises(HostFailureError) as exc_info:
            ShadowdHost("a", session).get_hash("alice")
        assert exc_info.value.kind == ErrorKind.HOST_FAILURE

    def test_transport_error_is_host_failure(self):
        session = FakeSession({("GET", "https://a/t/alice"): requests.ConnectionError("refused")})
        with pytest.raises(HostFailureError, match="refused"):
            ShadowdHost("a", session).get_hash("alice")

    def test_host_does_not_mark_itself_dead(self):
        session = FakeSession({("GET", "https://a/t/alice"): FakeResponse(500)})
        host = ShadowdHost("a", session)
        with pytest.raises(HostFailureError):
            host.get_hash("alice")
        assert host.alive is True

    def test_timeout_passed_to_session(self):
        session = FakeSession({("GET", "https://a/t/alice"): ok("h")})
        seen = {}
        original = session.request

        def request(method, url, data=None, timeout=None):
            seen["timeout"] = timeout
            return original(method, url, data=data, timeout=timeout)

        session.request = request
        ShadowdHost("a", session, timeout=2.5).get_hash("alice")
        assert seen["timeout"] == 2.5


# ---------------------------------------------------------------------------
# TestGetShadow
# ---------------------------------------------------------------------------


class TestGetShadow:
    def test_two_reads_of_the_same_token(self):
        session = FakeSession({("GET", "https://a/t/team1/alice"): [ok("$6$one"), ok("$6$two")]})
        result = ShadowdHost("a", session).get_shadow("team1", "alice")

        assert result == "$6$two"
        assert session.urls() == ["https://a/t/team1/alice", "https://a/t/team1/alice"]

    def test_identical_reads_warn_but_return_hash(self, caplog):
        session = FakeSession({("GET", "https://a/t/alice"): ok("$6$same")})
        with caplog.at_level(logging.WARNING, logger="shadowc.upstream"):
            result = ShadowdHost("a", session).get_shadow("", "alice")

        assert result == "$6$same"
        assert len(session.calls) == 2
        assert "break-in" in caplog.text

    def test_different_reads_do_not_warn(self, caplog):
        session = FakeSession({("GET", "https://a/t/alice"): [ok("$6$one"), ok("$6$two")]})
        with caplog.at_level(logging.WARNING, logger="shadowc.upstream"):
            ShadowdHost("a", session).get_shadow("", "alice")
        assert "break-in" not in caplog.text

    def test_second_read_not_found(self):
        session = FakeSession({("GET", "https://a/t/alice"): [ok("$6$one"), FakeResponse(404)]})
        with pytest.raises(NotFoundError):
            ShadowdHost("a", session).get_shadow("", "alice")

    def test_read_hash_twice_is_transport_independent(self):
        """The double read can be driven by any object with a request() method."""
        session = FakeSession({("GET", "https://a/t/bob"): [ok("x"), ok("y")]})
        assert ShadowdHost("a", session).read_hash_twice("bob") == ("x", "y")


# ---------------------------------------------------------------------------
# TestEnumerationAndRotation
# ---------------------------------------------------------------------------


class TestEnumerationAndRotation:
    @pytest.mark.parametrize("base", ["team1", "team1/"])
    def test_get_tokens_normalizes_trailing_slash(self, base):
        session = FakeSession({("GET", "https://a/t/team1/"): ok("team1/alice\nteam1/bob\n")})
        tokens = ShadowdHost("a", session).get_tokens(base)

        assert tokens == ["team1/alice", "team1/bob"]
        assert session.urls() == ["https://a/t/team1/"]

    def test_get_tokens_top_level(self):
        session = FakeSession({("GET", "https://a/t/"): ok("alice\nbob")})
        assert ShadowdHost("a", session).get_tokens("") == ["alice", "bob"]

    def test_salts_requested_with_empty_put(self):
        session = FakeSession({("PUT", "https://a/t/team1/alice"): ok("$6$s1\n$6$s2\n")})
        salts = ShadowdHost("a", session).get_password_change_salts("team1", "alice")

        assert salts == ["$6$s1", "$6$s2"]
        assert session.calls == [("PUT", "https://a/t/team1/alice", None)]

    def test_change_password_form_fields(self):
        session = FakeSession({("PUT", "https://a/t/alice"): ok("")})
        ShadowdHost("a", session).change_password("", "alice", ["p1", "p2"], "new-secret")

        method, url, data = session.calls[0]
        assert (method, url) == ("PUT", "https://a/t/alice")
        assert data == {"shadow[]": ["p1", "p2"], "password": "new-secret"}

    def test_change_password_unknown_user(self):
        session = FakeSession()
        with pytest.raises(NotFoundError):
            ShadowdHost("a", session).change_password("team1", "ghost", [], "pw")


# ---------------------------------------------------------------------------
# TestGetSSHKeys
# ---------------------------------------------------------------------------


class TestGetSSHKeys:
    def test_keys_parsed_per_line(self):
        body = "ssh-ed25519 AAAA alice@laptop\nssh-rsa BBBB\n\n"
        session = FakeSession({("GET", "https://a/ssh/team1/alice"): ok(body)})
        keys = ShadowdHost("a", session).get_ssh_keys("team1", "alice")

        assert keys == [SSHKey("ssh-ed25519 AAAA alice@laptop"), SSHKey("ssh-rsa BBBB")]
        assert keys[0].comment == "alice@laptop"
        assert keys[1].comment == ""


# ---------------------------------------------------------------------------
# TestShadowdUpstream
# ---------------------------------------------------------------------------


class TestShadowdUpstream:
    def test_alive_hosts_preserve_order(self):
        upstream = ShadowdUpstream.from_addresses(["a", "b", "c", "d"], FakeSession())
        upstream.hosts[0].mark_dead()
        upstream.hosts[2].mark_dead()

        assert [host.address for host in upstream.get_alive_hosts()] == ["b", "d"]

    def test_all_alive(self):
        upstream = ShadowdUpstream.from_addresses(["a", "b"], FakeSession())
        assert upstream.get_alive_hosts() == upstream.hosts

    def test_no_hosts_left(self):
        upstream = ShadowdUpstream.from_addresses(["a"], FakeSession())
        upstream.hosts[0].mark_dead()
        with pytest.raises(NoHostsLeftError):
            upstream.get_alive_hosts()

    def test_invalid_address_in_list(self):
        with pytest.raises(InvalidAddressError):
            ShadowdUpstream.from_addresses(["a", "http://b"], FakeSession())
