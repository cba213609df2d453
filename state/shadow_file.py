"""
state/shadow_file.py -- In-place editing of a shadow(5) credential table.

The table keeps the raw lines of the file in order. Updating an account
replaces its line and nothing else; accounts are never appended here, because
creating accounts is the job of the system tools in state/accounts.py.
"""

import io
import logging
from typing import TextIO

from core.errors import AccountNotFoundError
from core.models import SHADOW_FIELDS, Shadow
from state.atomic import atomic_write

logger = logging.getLogger("shadowc.state.shadow")

# Leading characters of the hash field that mean "no usable password".
_LOCKED_PREFIXES = ("!", "*")


class ShadowFile:
    def __init__(self, path: str, lines: list[str]) -> None:
        self.path = path
        self.lines = lines

    @classmethod
    def read(cls, path: str) -> "ShadowFile":
        with open(path, encoding="utf-8") as f:
            content = f.read().rstrip("\n")
        return cls(path, content.split("\n") if content else [])

    def index_of(self, username: str) -> int:
        prefix = username + ":"
        for index, line in enumerate(self.lines):
            if line.startswith(prefix):
                return index
        raise AccountNotFoundError(username, self.path)

    def usernames(self) -> list[str]:
        return [line.split(":", 1)[0] for line in self.lines if line]

    def users_with_hashes(self) -> list[str]:
        """Accounts whose hash field holds a real password hash."""
        users = []
        for line in self.lines:
            fields = line.split(":")
            if len(fields) < 2:
                continue
            hash_ = fields[1]
            if hash_ and not hash_.startswith(_LOCKED_PREFIXES):
                users.append(fields[0])
        return users

    def set_shadow(self, shadow: Shadow) -> None:
        """Replace the hash of an existing account, keeping its aging fields."""
        index = self.index_of(shadow.username)
        fields = self.lines[index].split(":")
        fields += [""] * (SHADOW_FIELDS - len(fields))
        fields[1] = shadow.hash
        self.lines[index] = ":".join(fields)
        logger.debug("replaced shadow entry for %s at line %d", shadow.username, index + 1)

    def write(self, writer: TextIO) -> int:
        if not self.lines:
            return 0
        return writer.write("\n".join(self.lines) + "\n")

    def persist(self) -> None:
        buf = io.StringIO()
        self.write(buf)
        atomic_write(self.path, buf.getvalue())
        logger.info("shadow file %s written", self.path)
