"""Ways of applying ``ConfigSet`` operations to OpenClaw.

``select_backend`` probes for the ``openclaw`` executable once; when it is
missing the JSON config file is edited directly.
"""

from __future__ import annotations

import json
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Iterable, Protocol

from loyal_openclaw.errors import ConfigParseError, ExternalToolError
from loyal_openclaw.files import dump_json, write_private_file
from loyal_openclaw.openclaw.reconcile import (
    ConfigSet,
    apply_operations,
    has_config_value,
    parse_config_path,
)

PROBE_ARGS = ("config", "get", "gateway.port")

Runner = Callable[..., "subprocess.CompletedProcess[str]"]


class ConfigBackend(Protocol):
    description: str

    def probe(self) -> bool: ...

    def has_path(self, path: str) -> bool: ...

    def config_set(self, operation: ConfigSet) -> None: ...

    def apply(self, operations: Iterable[ConfigSet]) -> None: ...


@dataclass
class OpenclawCliBackend:
    executable: str = "openclaw"
    runner: Runner = field(default_factory=lambda: subprocess.run)
    description: str = "OpenClaw CLI"

    def probe(self) -> bool:
        try:
            self.runner(
                [self.executable, *PROBE_ARGS],
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                check=False,
            )
        except FileNotFoundError:
            return False
        return True

    def has_path(self, path: str) -> bool:
        try:
            result = self.runner(
                [self.executable, "config", "get", path],
                capture_output=True,
                text=True,
                check=False,
            )
        except OSError as exc:
            raise ExternalToolError(f"openclaw config get failed: {exc}") from exc
        return result.returncode == 0

    def config_set(self, operation: ConfigSet) -> None:
        args = [self.executable, "config", "set", operation.path, operation.cli_value()]
        if operation.as_json:
            args.append("--json")
        try:
            result = self.runner(args, capture_output=True, text=True, check=False)
        except OSError as exc:
            raise ExternalToolError(f"openclaw config set failed: {exc}") from exc
        if result.returncode != 0:
            detail = (result.stderr or "").strip() or (result.stdout or "").strip()
            raise ExternalToolError(f"openclaw config set failed: {detail or 'unknown error'}")

    def apply(self, operations: Iterable[ConfigSet]) -> None:
        for operation in operations:
            self.config_set(operation)


@dataclass
class ConfigFileBackend:
    path: Path
    description: str = "config file"

    def probe(self) -> bool:
        return True

    def load(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            payload = json.loads(self.path.read_text(encoding="utf-8"))
        except ValueError as exc:
            raise ConfigParseError(
                f"Existing config is not valid JSON: {self.path}", path=self.path
            ) from exc
        if not isinstance(payload, dict):
            raise ConfigParseError(
                f"Existing config is not a JSON object: {self.path}", path=self.path
            )
        return payload

    def has_path(self, path: str) -> bool:
        return has_config_value(self.load(), parse_config_path(path))

    def config_set(self, operation: ConfigSet) -> None:
        self.apply([operation])

    def apply(self, operations: Iterable[ConfigSet]) -> None:
        merged = apply_operations(self.load(), operations)
        write_private_file(self.path, dump_json(merged))


def select_backend(
    *,
    config_path: Path,
    executable: str = "openclaw",
    runner: Runner | None = None,
) -> ConfigBackend:
    cli = OpenclawCliBackend(executable=executable, runner=runner or subprocess.run)
    if cli.probe():
        return cli
    return ConfigFileBackend(path=config_path)
