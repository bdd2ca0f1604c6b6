from __future__ import annotations

import json
import os
import stat

import pytest

from loyal_openclaw.errors import ConfigParseError
from loyal_openclaw.openclaw import (
    ConfigFileBackend,
    ProviderUpdate,
    build_models_operations,
    build_provider_operations,
    env_placeholder,
    merge_models_only,
    merge_provider_config,
    provider_config_path,
)
from loyal_openclaw.openclaw.reconcile import (
    apply_operations,
    format_config_path,
    has_config_value,
    parse_config_path,
)


def _update(**overrides) -> ProviderUpdate:
    values = {
        "provider": "Loyal",
        "base_url": "http://localhost:3000/v1",
        "api_key_value": "sk-loyal",
        "model_id": "qwen/qwen3-8b",
        "model_name": "Loyal",
    }
    values.update(overrides)
    return ProviderUpdate(**values)


def test_config_path_round_trips_quoted_segments() -> None:
    segments = ["agents", "defaults", "models", 'Loyal/qwen3.5 "x"']
    path = format_config_path(segments)
    assert path == 'agents.defaults.models["Loyal/qwen3.5 \\"x\\""]'
    assert parse_config_path(path) == segments


@pytest.mark.parametrize("path", ["", ".a", "a..b", 'a["unterminated'])
def test_parse_config_path_rejects_invalid(path: str) -> None:
    with pytest.raises(ValueError):
        parse_config_path(path)


def test_provider_operations_cover_provider_default_allowlist_and_mode() -> None:
    operations = {op.path: op for op in build_provider_operations(_update())}

    assert operations["models.providers.Loyal.baseUrl"].value == "http://localhost:3000/v1"
    assert operations["models.providers.Loyal.api"].value == "openai-completions"
    assert operations["models.providers.Loyal.models"].as_json is True
    assert operations["agents.defaults.model.primary"].value == "Loyal/qwen/qwen3-8b"
    allowlist = operations['agents.defaults.models["Loyal/qwen/qwen3-8b"]']
    assert allowlist.value == {}
    assert allowlist.cli_value() == "{}"
    assert operations["models.mode"].cli_value() == "merge"


def test_merge_provider_config_preserves_unrelated_keys() -> None:
    existing = {
        "unrelated": 1,
        "models": {"providers": {"Other": {"baseUrl": "http://other"}, "Loyal": {"headers": {"x": "1"}}}},
        "agents": {"defaults": {"models": {"Other/m": {"alias": "o"}}}},
    }

    merged = merge_provider_config(existing, _update())

    assert merged["unrelated"] == 1
    assert merged["models"]["providers"]["Other"] == {"baseUrl": "http://other"}
    assert merged["models"]["providers"]["Loyal"]["headers"] == {"x": "1"}
    assert merged["models"]["providers"]["Loyal"]["models"] == [{"id": "qwen/qwen3-8b", "name": "Loyal"}]
    assert merged["agents"]["defaults"]["models"] == {"Other/m": {"alias": "o"}, "Loyal/qwen/qwen3-8b": {}}
    assert merged["agents"]["defaults"]["model"]["primary"] == "Loyal/qwen/qwen3-8b"
    assert merged["models"]["mode"] == "merge"
    assert "Loyal" not in existing["models"]["providers"]["Other"]
    assert existing["models"]["providers"]["Loyal"] == {"headers": {"x": "1"}}


def test_merge_models_only_replaces_only_model_list() -> None:
    configured = merge_provider_config({}, _update())
    models = [{"id": "a", "name": "A"}, {"id": "b", "name": "b"}]

    updated = merge_models_only(configured, "Loyal", models)

    provider = updated["models"]["providers"]["Loyal"]
    assert provider["models"] == models
    assert provider["baseUrl"] == "http://localhost:3000/v1"
    assert provider["apiKey"] == "sk-loyal"
    assert updated["agents"] == configured["agents"]


def test_env_placeholder() -> None:
    assert env_placeholder("LOYAL_API_KEY") == "${LOYAL_API_KEY}"


def test_file_backend_creates_missing_config_owner_only(tmp_path) -> None:
    config_path = tmp_path / "openclaw" / "openclaw.json"
    backend = ConfigFileBackend(path=config_path)

    backend.apply(build_provider_operations(_update()))

    payload = json.loads(config_path.read_text(encoding="utf-8"))
    assert payload["models"]["providers"]["Loyal"]["apiKey"] == "sk-loyal"
    if os.name == "posix":
        assert stat.S_IMODE(config_path.stat().st_mode) == 0o600
        assert stat.S_IMODE(config_path.parent.stat().st_mode) == 0o700


def test_file_backend_is_idempotent(tmp_path) -> None:
    config_path = tmp_path / "openclaw.json"
    config_path.write_text(json.dumps({"unrelated": 1, "gateway": {"port": 18789}}), encoding="utf-8")
    backend = ConfigFileBackend(path=config_path)

    backend.apply(build_provider_operations(_update()))
    first = config_path.read_bytes()
    backend.apply(build_provider_operations(_update()))

    assert config_path.read_bytes() == first
    payload = json.loads(first)
    assert payload["unrelated"] == 1
    assert payload["gateway"] == {"port": 18789}


def test_file_backend_never_overwrites_invalid_json(tmp_path) -> None:
    config_path = tmp_path / "openclaw.json"
    config_path.write_text("{ not json", encoding="utf-8")
    backend = ConfigFileBackend(path=config_path)

    with pytest.raises(ConfigParseError):
        backend.apply(build_models_operations("Loyal", [{"id": "a", "name": "a"}]))

    assert config_path.read_text(encoding="utf-8") == "{ not json"
    assert sorted(p.name for p in tmp_path.iterdir()) == ["openclaw.json"]


def test_file_backend_rejects_non_object_intermediate(tmp_path) -> None:
    config_path = tmp_path / "openclaw.json"
    config_path.write_text(json.dumps({"models": "oops"}), encoding="utf-8")

    with pytest.raises(ConfigParseError, match="models is not an object"):
        ConfigFileBackend(path=config_path).apply(build_provider_operations(_update()))

    assert json.loads(config_path.read_text(encoding="utf-8")) == {"models": "oops"}


def test_new_provider_is_created_as_one_block() -> None:
    operations = build_provider_operations(_update(), provider_exists=False)

    assert operations[0].path == provider_config_path("Loyal")
    assert operations[0].as_json is True
    assert operations[0].value == {
        "baseUrl": "http://localhost:3000/v1",
        "apiKey": "sk-loyal",
        "api": "openai-completions",
        "models": [{"id": "qwen/qwen3-8b", "name": "Loyal"}],
    }
    assert dict((op.path, op.value) for op in operations[1:]) == {
        "agents.defaults.model.primary": "Loyal/qwen/qwen3-8b",
        'agents.defaults.models["Loyal/qwen/qwen3-8b"]': {},
        "models.mode": "merge",
    }


def test_block_and_field_operations_converge() -> None:
    as_block = apply_operations({}, build_provider_operations(_update(), provider_exists=False))
    by_field = apply_operations({}, build_provider_operations(_update()))

    assert as_block == by_field


def test_has_config_value() -> None:
    config = {"models": {"providers": {"Loyal": {}}, "mode": "merge"}}

    assert has_config_value(config, ["models", "providers", "Loyal"]) is True
    assert has_config_value(config, ["models", "providers", "Other"]) is False
    assert has_config_value(config, ["models", "mode", "x"]) is False


def test_file_backend_reports_existing_provider(tmp_path) -> None:
    config_path = tmp_path / "openclaw.json"
    backend = ConfigFileBackend(path=config_path)

    assert backend.has_path(provider_config_path("Loyal")) is False
    backend.apply(build_provider_operations(_update(), provider_exists=False))
    assert backend.has_path(provider_config_path("Loyal")) is True


@pytest.mark.skipif(os.name != "posix", reason="symlinks need posix")
def test_file_backend_writes_through_symlinked_config(tmp_path) -> None:
    dotfiles = tmp_path / "dotfiles"
    dotfiles.mkdir()
    target = dotfiles / "openclaw.json"
    target.write_text(json.dumps({"unrelated": 1}), encoding="utf-8")
    link = tmp_path / "openclaw.json"
    link.symlink_to(target)

    ConfigFileBackend(path=link).apply(build_models_operations("Loyal", [{"id": "a", "name": "a"}]))

    assert link.is_symlink()
    payload = json.loads(target.read_text(encoding="utf-8"))
    assert payload["unrelated"] == 1
    assert payload["models"]["providers"]["Loyal"]["models"] == [{"id": "a", "name": "a"}]
    assert sorted(p.name for p in dotfiles.iterdir()) == ["openclaw.json"]
