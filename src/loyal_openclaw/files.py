"""Owner-only file helpers shared by the identity, local config and OpenClaw writers."""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Any

PRIVATE_DIR_MODE = 0o700
PRIVATE_FILE_MODE = 0o600


def _chmod(path: Path, mode: int) -> None:
    if os.name != "posix":
        return
    path.chmod(mode)


def ensure_private_dir(path: Path) -> None:
    existed = path.exists()
    path.mkdir(mode=PRIVATE_DIR_MODE, parents=True, exist_ok=True)
    if not existed:
        _chmod(path, PRIVATE_DIR_MODE)


def write_private_file(path: Path, text: str) -> None:
    """Write ``text`` to ``path`` with mode 0600 via a temp file and rename.

    The parent directory is created with mode 0700 when missing. A symlinked
    ``path`` is written through to its target.
    """
    if path.is_symlink():
        path = path.resolve()
    ensure_private_dir(path.parent)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(text)
        _chmod(tmp_path, PRIVATE_FILE_MODE)
        os.replace(tmp_path, path)
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise
    _chmod(path, PRIVATE_FILE_MODE)


def dump_json(payload: Any) -> str:
    return json.dumps(payload, indent=2) + "\n"
