"""OpenClaw config reconciliation."""

from loyal_openclaw.openclaw.backends import (
    ConfigBackend,
    ConfigFileBackend,
    OpenclawCliBackend,
    select_backend,
)
from loyal_openclaw.openclaw.envfile import upsert_env_var
from loyal_openclaw.openclaw.reconcile import (
    ConfigSet,
    ProviderUpdate,
    build_models_operations,
    build_provider_operations,
    env_placeholder,
    merge_models_only,
    merge_provider_config,
    provider_config_path,
)

__all__ = [
    "ConfigBackend",
    "ConfigFileBackend",
    "OpenclawCliBackend",
    "select_backend",
    "upsert_env_var",
    "ConfigSet",
    "ProviderUpdate",
    "build_models_operations",
    "build_provider_operations",
    "env_placeholder",
    "merge_models_only",
    "merge_provider_config",
    "provider_config_path",
]
