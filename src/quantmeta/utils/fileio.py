"""
Atomic file-write utilities.

Registry and metadata files are rewritten in place; a crash mid-write must
leave the previous version intact. Content goes to a temporary file in the
destination directory and is moved into place with ``os.replace()``.
"""

from __future__ import annotations

import json
import os
import tempfile
from typing import Any, Callable, IO


def _atomic_write(path: str | os.PathLike, write: Callable[[IO[str]], None]) -> None:
    path = os.fspath(path)
    dir_path = os.path.dirname(path) or "."
    tmp_path: str | None = None
    try:
        with tempfile.NamedTemporaryFile(
            mode="w", dir=dir_path, suffix=".tmp", delete=False
        ) as tmp:
            tmp_path = tmp.name
            write(tmp)
        os.replace(tmp_path, path)
    except BaseException:
        if tmp_path is not None and os.path.exists(tmp_path):
            os.unlink(tmp_path)
        raise


def atomic_write_json(path: str | os.PathLike, data: Any, *, indent: int = 2) -> None:
    """Write *data* as JSON atomically.

    Values json cannot encode natively (paths, numpy scalars, timestamps)
    are written via ``str()``.
    """
    _atomic_write(path, lambda f: json.dump(data, f, indent=indent, default=str))

