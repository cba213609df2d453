"""state/passwd.py -- Home directory lookup from a passwd(5) file."""

import logging

logger = logging.getLogger("shadowc.state.passwd")

_PASSWD_FIELDS = 7


def get_home_dirs(passwd_path: str) -> dict[str, str]:
    """Map username -> home directory.

    Accounts without a home (empty or "/") are left out. Raises ValueError on
    a line with fewer than seven fields.
    """
    homes: dict[str, str] = {}
    with open(passwd_path, encoding="utf-8") as f:
        for lineno, line in enumerate(f, start=1):
            line = line.rstrip("\n")
            if not line:
                continue
            fields = line.split(":")
            if len(fields) < _PASSWD_FIELDS:
                raise ValueError(f"invalid passwd entry in {passwd_path} at line {lineno}: {line!r}")

            home = fields[5]
            if home in ("", "/"):
                continue
            homes[fields[0]] = home
    return homes
