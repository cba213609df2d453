"""
core/upstream.py -- shadowd hosts and the ordered upstream pool.

Each ShadowdHost wraps one server address and a requests.Session configured
by the caller (core/tls.py pins the trusted root certificate on it). Hosts
speak the token-addressed protocol:

  GET  https://<address>/t/<token>     password hash (single-use on the server)
  GET  https://<address>/t/<base>/     newline-delimited token list
  PUT  https://<address>/t/<token>     rotation salts (empty body) or
                                       rotation submit (shadow[]=..&password=..)
  GET  https://<address>/ssh/<token>   newline-delimited authorized_keys lines

Status mapping shared by all requests:
  200       payload (UTF-8, trailing newlines trimmed)
  404, 204  NotFoundError -- the host does not know the token
  other     HostFailureError -- as is any requests.RequestException

Hosts never retry and never change their own liveness. The failover loop in
core/pipeline.py marks a host dead after a HostFailureError; ShadowdUpstream
then leaves it out of every later get_alive_hosts() snapshot.
"""

import logging
from typing import Optional

import requests

from core.errors import HostFailureError, InvalidAddressError, NoHostsLeftError, NotFoundError
from core.models import SSHKey, make_token

logger = logging.getLogger("shadowc.upstream")

ROUTE_HASH = "t"
ROUTE_SSH = "ssh"

_NOT_FOUND_STATUSES = (404, 204)


class ShadowdHost:
    def __init__(self, address: str, session: requests.Session, timeout: Optional[float] = None) -> None:
        if "://" in address:
            raise InvalidAddressError(address)

        self.address = address
        self.alive = True
        self._session = session
        self._timeout = timeout

    def __repr__(self) -> str:
        state = "alive" if self.alive else "dead"
        return f"<ShadowdHost {self.address} {state}>"

    def mark_dead(self) -> None:
        self.alive = False

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def url(self, route: str, path: str) -> str:
        return f"https://{self.address}/{route}/{path}"

    def _request(self, method: str, route: str, path: str, data: Optional[dict] = None) -> str:
        url = self.url(route, path)
        logger.debug("%s %s", method, url)
        try:
            resp = self._session.request(method, url, data=data, timeout=self._timeout)
        except requests.RequestException as e:
            raise HostFailureError(self.address, f"{method} {url} failed: {e}") from e

        if resp.status_code in _NOT_FOUND_STATUSES:
            raise NotFoundError(self.address, f"{method} {url}: {resp.status_code}")
        if resp.status_code != 200:
            raise HostFailureError(self.address, f"{method} {url}: unexpected status {resp.status_code}")

        resp.encoding = "utf-8"
        return resp.text.rstrip("\n")

    # ------------------------------------------------------------------
    # Password hashes
    # ------------------------------------------------------------------

    def get_hash(self, token: str) -> str:
        return self._request("GET", ROUTE_HASH, token)

    def read_hash_twice(self, token: str) -> tuple[str, str]:
        """Read the hash entry for token two times in a row.

        The server hands out a fresh entry on every read, so two identical
        answers mean the entry was not rotated in between.
        """
        first = self.get_hash(token)
        second = self.get_hash(token)
        return first, second

    def get_shadow(self, pool: str, username: str) -> str:
        """Return the hash for pool/username, warning when both reads match."""
        token = make_token(pool, username)
        first, second = self.read_hash_twice(token)
        if first == second:
            logger.warning(
                "%s returned the same hash twice for %s: the entry was not rotated between reads, "
                "someone may have read it before us (possible break-in attempt)",
                self.address,
                token,
            )
        return second

    def get_tokens(self, base: str) -> list[str]:
        """List tokens known under base ("" lists the top level)."""
        base = base.removesuffix("/")
        path = f"{base}/" if base else ""
        body = self._request("GET", ROUTE_HASH, path)
        return [line for line in body.split("\n") if line]

    # ------------------------------------------------------------------
    # Password rotation
    # ------------------------------------------------------------------

    def get_password_change_salts(self, pool: str, username: str) -> list[str]:
        body = self._request("PUT", ROUTE_HASH, make_token(pool, username))
        return [line for line in body.split("\n") if line]

    def change_password(self, pool: str, username: str, proofs: list[str], password: str) -> None:
        self._request(
            "PUT",
            ROUTE_HASH,
            make_token(pool, username),
            data={"shadow[]": proofs, "password": password},
        )

    # ------------------------------------------------------------------
    # SSH keys
    # ------------------------------------------------------------------

    def get_ssh_keys(self, pool: str, username: str) -> list[SSHKey]:
        body = self._request("GET", ROUTE_SSH, make_token(pool, username))
        return [SSHKey(line) for line in body.split("\n") if line.strip()]


class ShadowdUpstream:
    """Ordered pool of shadowd hosts; list order is failover priority."""

    def __init__(self, hosts: list[ShadowdHost]) -> None:
        self.hosts = list(hosts)

    @classmethod
    def from_addresses(
        cls, addresses: list[str], session: requests.Session, timeout: Optional[float] = None
    ) -> "ShadowdUpstream":
        return cls([ShadowdHost(address, session, timeout=timeout) for address in addresses])

    def get_alive_hosts(self) -> list[ShadowdHost]:
        alive = [host for host in self.hosts if host.alive]
        if not alive:
            raise NoHostsLeftError()
        return alive
