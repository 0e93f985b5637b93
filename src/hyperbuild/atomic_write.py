"""
Atomic file writes.

Files are written to a temp file in the destination directory, fsynced, then
renamed over the final path so readers never observe a partial file.
"""
from __future__ import annotations

import os
import tempfile
from pathlib import Path

__all__ = ["write_bytes_atomically"]


def write_bytes_atomically(target_path: Path, data: bytes) -> None:
    """
    Write ``data`` to ``target_path`` atomically.

    Args:
        target_path: Final path for the file (parent is created if missing)
        data: Complete file content

    Raises:
        OSError: If any file operation fails; the temp file is removed
    """
    target_path = Path(target_path)
    target_path.parent.mkdir(parents=True, exist_ok=True)

    fd, temp_name = tempfile.mkstemp(prefix=".hb.tmp.", dir=target_path.parent)
    temp_path = Path(temp_name)

    try:
        with os.fdopen(fd, "wb") as out:
            out.write(data)
            out.flush()
            os.fsync(out.fileno())
        os.replace(temp_path, target_path)
    except BaseException:
        try:
            temp_path.unlink()
        except FileNotFoundError:
            pass
        raise
