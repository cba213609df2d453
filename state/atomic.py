"""
state/atomic.py -- All-or-nothing file replacement.

The temp file is created in the target's own directory so the final
os.replace() never crosses a filesystem boundary and readers see either the
old content or the new content, nothing in between. Any failure before the
rename deletes the temp file and re-raises; the original is left untouched.
"""

import logging
import os
import stat
import tempfile
from typing import Optional

logger = logging.getLogger("shadowc.state")


def atomic_write(path: str, content: str, mode: Optional[int] = None) -> None:
    """Replace path with content.

    Ownership follows the existing file. Permissions: mode when given, else
    the existing file's mode, else the mkstemp default (0600).
    """
    directory = os.path.dirname(os.path.abspath(path))
    fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=f".{os.path.basename(path)}.")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())

        if os.path.exists(path):
            current = os.stat(path)
            os.chown(tmp_path, current.st_uid, current.st_gid)
            if mode is None:
                mode = stat.S_IMODE(current.st_mode)
        if mode is not None:
            os.chmod(tmp_path, mode)

        os.replace(tmp_path, path)
    except BaseException:
        # Clean up temp file on failure
        if os.path.exists(tmp_path):
            os.remove(tmp_path)
        raise

    logger.debug("wrote %s", path)
