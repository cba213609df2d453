"""
state/authorized_keys.py -- Order-preserving, de-duplicating authorized_keys.

AuthorizedKeysFile(path) starts empty and overwrites the file on persist();
AuthorizedKeysFile.read(path) loads the existing lines first so new keys are
merged in after them. Existing lines are kept verbatim, blank lines and
comments included. Two keys are the same key only when their raw lines are
byte-identical.
"""

import io
import logging
import os
from typing import Optional, TextIO

from core.models import SSHKey
from state.atomic import atomic_write

logger = logging.getLogger("shadowc.state.keys")

AUTHORIZED_KEYS_MODE = 0o600
SSH_DIR_MODE = 0o700


class AuthorizedKeysFile:
    def __init__(self, path: str, keys: Optional[list[SSHKey]] = None) -> None:
        self.path = path
        self.keys: list[SSHKey] = []
        for key in keys or []:
            self.add_key(key)

    @classmethod
    def read(cls, path: str) -> "AuthorizedKeysFile":
        """Load path for merging. A missing file is an empty key set."""
        try:
            with open(path, encoding="utf-8") as f:
                lines = f.read().splitlines()
        except FileNotFoundError:
            logger.debug("%s does not exist yet", path)
            lines = []

        keys_file = cls(path)
        keys_file.keys = [SSHKey(line) for line in lines]
        return keys_file

    def add_key(self, key: SSHKey) -> bool:
        """Append key unless an identical line is present. Returns True if added."""
        if key in self.keys:
            return False
        self.keys.append(key)
        return True

    def write(self, writer: TextIO) -> int:
        written = 0
        for key in self.keys:
            written += writer.write(key.raw + "\n")
        return written

    def persist(self) -> None:
        """Write the keys atomically, creating the containing directory (0700) if absent."""
        directory = os.path.dirname(os.path.abspath(self.path))
        if not os.path.isdir(directory):
            os.makedirs(directory, mode=SSH_DIR_MODE)
        buf = io.StringIO()
        self.write(buf)
        atomic_write(self.path, buf.getvalue(), mode=AUTHORIZED_KEYS_MODE)
        logger.info("%s written with %d line(s)", self.path, len(self.keys))
