"""
state/accounts.py -- Thin wrappers around system account tools.

Creating accounts and changing file ownership is outside what shadowc edits
itself; it shells out to useradd and relies on the OS for ownership.
"""

import logging
import pwd
import shlex
import shutil
import subprocess

from core.errors import AccountCreationError

logger = logging.getLogger("shadowc.state.accounts")


def create_user(username: str, useradd_command: str = "useradd") -> None:
    """Create username with a home directory via useradd."""
    argv = [*shlex.split(useradd_command), "-m", username]
    logger.info("creating user %s: %s", username, shlex.join(argv))
    try:
        result = subprocess.run(argv, capture_output=True, text=True, check=False)
    except OSError as e:
        raise AccountCreationError(f"can't run {argv[0]}: {e}") from e

    if result.returncode != 0:
        raise AccountCreationError(
            f"{shlex.join(argv)} exited with {result.returncode}: {result.stderr.strip()}"
        )


def chown_to_user(path: str, username: str) -> None:
    """Give path to username and the user's primary group."""
    shutil.chown(path, user=username, group=_primary_group(username))


def _primary_group(username: str) -> int:
    return pwd.getpwnam(username).pw_gid
