"""Provider/model settings expressed as idempotent OpenClaw config operations.

Both the CLI backend and the file backend consume the same list of
``ConfigSet`` operations, so the two strategies converge on the same config.
"""

from __future__ import annotations

import copy
import json
import re
from dataclasses import dataclass
from typing import Any, Iterable, Sequence

from loyal_openclaw.errors import ConfigParseError

OPENAI_COMPLETIONS_API = "openai-completions"
MERGE_MODE = "merge"

_SEGMENT_RE = re.compile(r'\["((?:[^"\\]|\\.)*)"\]|([^.\[\]]+)')
_PLAIN_SEGMENT_RE = re.compile(r"^[A-Za-z0-9_-]+$")


def parse_config_path(path: str) -> list[str]:
    segments: list[str] = []
    position = 0
    while position < len(path):
        if path[position] == "." and segments:
            position += 1
        match = _SEGMENT_RE.match(path, position)
        if match is None:
            raise ValueError(f"invalid config path: {path!r}")
        quoted, plain = match.groups()
        segments.append(re.sub(r"\\(.)", r"\1", quoted) if quoted is not None else plain)
        position = match.end()
    if not segments:
        raise ValueError("config path must not be empty")
    return segments


def format_config_path(segments: Sequence[str]) -> str:
    parts: list[str] = []
    for index, segment in enumerate(segments):
        if _PLAIN_SEGMENT_RE.match(segment):
            parts.append(segment if index == 0 else f".{segment}")
        else:
            escaped = segment.replace("\\", "\\\\").replace('"', '\\"')
            parts.append(f'["{escaped}"]')
    return "".join(parts)


@dataclass(frozen=True)
class ConfigSet:
    """Set ``path`` to ``value``; ``as_json`` marks values passed to the CLI as JSON."""

    path: str
    value: Any
    as_json: bool = False

    @property
    def segments(self) -> list[str]:
        return parse_config_path(self.path)

    def cli_value(self) -> str:
        if self.as_json:
            return json.dumps(self.value)
        return str(self.value)


@dataclass(frozen=True)
class ProviderUpdate:
    provider: str
    base_url: str
    api_key_value: str
    model_id: str
    model_name: str
    api: str = OPENAI_COMPLETIONS_API

    @property
    def qualified_model(self) -> str:
        return f"{self.provider}/{self.model_id}"

    def provider_models(self) -> list[dict[str, str]]:
        return [{"id": self.model_id, "name": self.model_name}]

    def provider_block(self) -> dict[str, Any]:
        return {
            "baseUrl": self.base_url,
            "apiKey": self.api_key_value,
            "api": self.api,
            "models": self.provider_models(),
        }


def env_placeholder(env_var_name: str) -> str:
    return f"${{{env_var_name}}}"


def provider_config_path(provider: str, *tail: str) -> str:
    return format_config_path(["models", "providers", provider, *tail])


def build_provider_operations(
    update: ProviderUpdate,
    *,
    provider_exists: bool = True,
) -> list[ConfigSet]:
    """Operations that point OpenClaw at ``update``.

    An existing provider is updated field by field so its other settings
    survive; a new one is created with a single JSON set of the whole block.
    """
    if provider_exists:
        operations = [
            ConfigSet(provider_config_path(update.provider, "baseUrl"), update.base_url),
            ConfigSet(provider_config_path(update.provider, "apiKey"), update.api_key_value),
            ConfigSet(provider_config_path(update.provider, "api"), update.api),
            ConfigSet(
                provider_config_path(update.provider, "models"),
                update.provider_models(),
                as_json=True,
            ),
        ]
    else:
        operations = [
            ConfigSet(provider_config_path(update.provider), update.provider_block(), as_json=True)
        ]
    return operations + [
        ConfigSet("agents.defaults.model.primary", update.qualified_model),
        ConfigSet(
            format_config_path(["agents", "defaults", "models", update.qualified_model]),
            {},
            as_json=True,
        ),
        ConfigSet("models.mode", MERGE_MODE),
    ]


def build_models_operations(provider: str, models: Iterable[dict[str, str]]) -> list[ConfigSet]:
    return [ConfigSet(provider_config_path(provider, "models"), list(models), as_json=True)]


def set_config_value(config: dict[str, Any], segments: Sequence[str], value: Any) -> None:
    node = config
    walked: list[str] = []
    for segment in segments[:-1]:
        walked.append(segment)
        child = node.get(segment)
        if child is None:
            child = {}
            node[segment] = child
        elif not isinstance(child, dict):
            raise ConfigParseError(
                f"{format_config_path(walked)} is not an object; edit the config manually"
            )
        node = child
    node[segments[-1]] = copy.deepcopy(value)


def has_config_value(config: dict[str, Any], segments: Sequence[str]) -> bool:
    node: Any = config
    for segment in segments:
        if not isinstance(node, dict) or segment not in node:
            return False
        node = node[segment]
    return True


def apply_operations(config: dict[str, Any], operations: Iterable[ConfigSet]) -> dict[str, Any]:
    merged = copy.deepcopy(config)
    for operation in operations:
        set_config_value(merged, operation.segments, operation.value)
    return merged


def merge_provider_config(config: dict[str, Any], update: ProviderUpdate) -> dict[str, Any]:
    return apply_operations(config, build_provider_operations(update))


def merge_models_only(
    config: dict[str, Any],
    provider: str,
    models: Iterable[dict[str, str]],
) -> dict[str, Any]:
    return apply_operations(config, build_models_operations(provider, models))
