"""dotenv-style KEY="VALUE" upserts for the OpenClaw env file."""

from __future__ import annotations

import re
from pathlib import Path

from loyal_openclaw.files import write_private_file


def format_env_line(key: str, value: str) -> str:
    escaped = str(value).replace('"', '\\"')
    return f'{key}="{escaped}"'


def upsert_env_var(path: str | Path, key: str, value: str) -> Path:
    env_path = Path(path)
    lines: list[str] = []
    if env_path.exists():
        lines = re.split(r"\r?\n", env_path.read_text(encoding="utf-8"))

    new_line = format_env_line(key, value)
    matcher = re.compile(rf"^\s*(export\s+)?{re.escape(key)}=")

    updated = False
    rewritten = []
    for line in lines:
        if matcher.match(line):
            updated = True
            rewritten.append(f"export {new_line}" if line.lstrip().startswith("export ") else new_line)
        else:
            rewritten.append(line)
    if not updated:
        rewritten.append(new_line)

    write_private_file(env_path, "\n".join(line for line in rewritten if line) + "\n")
    return env_path
