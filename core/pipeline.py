"""
core/pipeline.py -- Ordered failover across the shadowd upstream pool.

For every account the loop takes a fresh get_alive_hosts() snapshot and walks
it in order:

  NotFoundError     host does not know the account -> try the next host
  HostFailureError  host is broken -> mark it dead, log, try the next host
  success           record the result, stop

An account nobody knows raises AllNotFoundError, unless skip_missing is set,
in which case it is logged and left out of the result. Running out of hosts
raises NoHostsLeftError, which aborts the whole batch.

No print statements. The CLI in main.py owns all user-facing output.
"""

import logging
from typing import Callable, Optional, TypeVar

from core.errors import AllNotFoundError, ErrorKind, HostError, NoHostsLeftError
from core.models import AuthorizedKeys, Shadow, SSHKey, describe_user, make_token
from core.secret_hash import secret_hash
from core.upstream import ShadowdHost, ShadowdUpstream

logger = logging.getLogger("shadowc.pipeline")

T = TypeVar("T")


def with_failover(upstream: ShadowdUpstream, what: str, request: Callable[[ShadowdHost], T]) -> T:
    """Run request against alive hosts in order until one of them answers.

    Raises AllNotFoundError when every host tried answered NotFound, and
    NoHostsLeftError when the pool is (or becomes) empty.
    """
    tried_any = False
    for host in upstream.get_alive_hosts():
        tried_any = True
        try:
            return request(host)
        except HostError as e:
            if e.kind == ErrorKind.NOT_FOUND:
                logger.debug("%s not found on %s", what, host.address)
                continue
            if e.kind == ErrorKind.HOST_FAILURE:
                logger.warning("shadowd host %s failed, skipping it from now on: %s", host.address, e)
                host.mark_dead()
                continue
            raise

    if tried_any and any(host.alive for host in upstream.hosts):
        raise AllNotFoundError(what)
    raise NoHostsLeftError(what)


def get_shadows(
    upstream: ShadowdUpstream, pool: str, usernames: list[str], skip_missing: bool = False
) -> list[Shadow]:
    """Retrieve one Shadow per username, in input order."""
    shadows: list[Shadow] = []
    for username in usernames:
        what = f"hash for {describe_user(pool, username)}"
        try:
            hash_ = with_failover(upstream, what, lambda host: host.get_shadow(pool, username))
        except AllNotFoundError:
            if not skip_missing:
                raise
            logger.warning("%s not found on any shadowd host, skipping", describe_user(pool, username))
            continue

        logger.info("retrieved hash for %s", describe_user(pool, username))
        shadows.append(Shadow(username=username, hash=hash_))
    return shadows


def get_authorized_keys(
    upstream: ShadowdUpstream, pool: str, usernames: list[str], skip_missing: bool = False
) -> AuthorizedKeys:
    """Retrieve SSH keys per username; users unknown upstream are skipped when skip_missing is set."""
    keys: AuthorizedKeys = {}
    for username in usernames:
        what = f"ssh keys for {describe_user(pool, username)}"
        try:
            user_keys: list[SSHKey] = with_failover(upstream, what, lambda host: host.get_ssh_keys(pool, username))
        except AllNotFoundError:
            if not skip_missing:
                raise
            logger.warning("no ssh keys for %s on any shadowd host, skipping", describe_user(pool, username))
            continue

        logger.info("retrieved %d ssh key(s) for %s", len(user_keys), describe_user(pool, username))
        keys[username] = user_keys
    return keys


def get_pool_usernames(upstream: ShadowdUpstream, pool: str) -> list[str]:
    """List every account known upstream under pool, as bare usernames."""
    tokens = with_failover(upstream, f"tokens of pool {pool!r}", lambda host: host.get_tokens(pool))
    prefix = make_token(pool, "")
    usernames = []
    for token in tokens:
        username = token.removeprefix(prefix).strip("/")
        if username and username not in usernames:
            usernames.append(username)
    return usernames


def change_password(
    upstream: ShadowdUpstream,
    pool: str,
    username: str,
    old_password: str,
    new_password: str,
    hasher: Optional[Callable[[str, str], str]] = None,
) -> ShadowdHost:
    """Rotate the password of pool/username, returning the host that accepted it.

    Each host's salts are hashed with old_password locally; only the proofs
    and the new password are sent. A host that does not know the account is
    skipped; a host that fails is marked dead.
    """
    hasher = hasher or secret_hash

    def rotate(host: ShadowdHost) -> ShadowdHost:
        salts = host.get_password_change_salts(pool, username)
        proofs = [hasher(old_password, salt) for salt in salts]
        logger.debug("submitting %d proof hash(es) to %s", len(proofs), host.address)
        host.change_password(pool, username, proofs, new_password)
        return host

    host = with_failover(upstream, f"password of {describe_user(pool, username)}", rotate)
    logger.info("password changed for %s on %s", describe_user(pool, username), host.address)
    return host
