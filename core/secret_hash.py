"""
core/secret_hash.py -- crypt(3)-compatible hashing for rotation proofs.

shadowd sends the salts of previous password hashes; the client proves that
it knows the current password by hashing it under each salt. The plaintext
never leaves the machine.

Salts arrive as crypt(3) setting strings:

  $1$<salt>                         MD5-crypt
  $5$[rounds=N$]<salt>              SHA-256-crypt
  $6$[rounds=N$]<salt>              SHA-512-crypt
  $2a$ / $2b$ / $2y$<cost>$<salt>   bcrypt

A full hash is accepted in place of a bare setting; the trailing checksum is
ignored, as crypt(3) does.

The stdlib crypt module is gone from current Python releases, so the SHA and
MD5 schemes go through passlib's pure-Python handlers and bcrypt through the
bcrypt package directly.
"""

import bcrypt
from passlib.hash import md5_crypt, sha256_crypt, sha512_crypt

from core.errors import UnsupportedSaltError

# glibc defaults when "rounds=" is absent, and its salt length cap.
_SHA_DEFAULT_ROUNDS = 5000
_MAX_SALT_CHARS = 16

_SHA_HANDLERS = {"5": sha256_crypt, "6": sha512_crypt}


def secret_hash(password: str, salt: str) -> str:
    """Return the crypt(3) hash of password under salt."""
    if salt.startswith(("$2a$", "$2b$", "$2y$")):
        try:
            return bcrypt.hashpw(password.encode("utf-8"), salt.encode("ascii")).decode("ascii")
        except ValueError as e:
            raise UnsupportedSaltError(f"invalid bcrypt salt {salt!r}: {e}") from e

    parts = salt.split("$")
    # "$6$rounds=N$salt$hash" -> ["", "6", "rounds=N", "salt", "hash"]
    if len(parts) < 3 or parts[0] != "":
        raise UnsupportedSaltError(f"unsupported salt format: {salt!r}")

    scheme, params = parts[1], parts[2:]

    if scheme == "1":
        return md5_crypt.using(salt=params[0][:8]).hash(password)

    handler = _SHA_HANDLERS.get(scheme)
    if handler is None:
        raise UnsupportedSaltError(f"unsupported crypt scheme ${scheme}$ in salt {salt!r}")

    rounds = _SHA_DEFAULT_ROUNDS
    explicit_rounds = params[0].startswith("rounds=")
    if explicit_rounds:
        try:
            rounds = int(params[0].removeprefix("rounds="))
        except ValueError as e:
            raise UnsupportedSaltError(f"invalid rounds in salt {salt!r}") from e
        params = params[1:]
        if not params:
            raise UnsupportedSaltError(f"missing salt after rounds in {salt!r}")

    rounds = min(max(rounds, handler.min_rounds), handler.max_rounds)
    result = handler.using(salt=params[0][:_MAX_SALT_CHARS], rounds=rounds).hash(password)

    # passlib omits "rounds=5000$" as implicit; crypt(3) keeps it when the salt had it.
    prefix = f"${scheme}$"
    if explicit_rounds and not result.startswith(f"{prefix}rounds="):
        result = f"{prefix}rounds={rounds}${result.removeprefix(prefix)}"
    return result
