"""Interactive setup flow: identity, registration, API key and OpenClaw config.

The flow is meant to be re-run safely. Nothing is rolled back on failure;
every write is a merge or an upsert, so running it again converges.
"""

from __future__ import annotations

import subprocess
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, TextIO
from urllib.parse import quote

from loyal_openclaw.cli.config import (
    SetupSettings,
    load_local_config,
    normalize_server_url,
    resolve_server_url,
    save_local_config,
)
from loyal_openclaw.cli.identity import (
    LocalIdentity,
    has_existing_setup,
    load_existing_identity,
    load_or_create_identity,
)
from loyal_openclaw.cli.session import InteractiveSession
from loyal_openclaw.client import LoyalClient
from loyal_openclaw.errors import ConfigParseError, RemoteRequestError
from loyal_openclaw.openclaw import (
    ConfigBackend,
    ConfigSet,
    ProviderUpdate,
    build_models_operations,
    build_provider_operations,
    env_placeholder,
    provider_config_path,
    select_backend,
    upsert_env_var,
)
from loyal_openclaw.schemas import DepositInfo, ModelDescriptor, build_provider_models, format_balance
from loyal_openclaw.signing import join_url

QR_SERVICE_URL = "https://api.qrserver.com/v1/create-qr-code/?size=200x200&data="


class SetupMode(str, Enum):
    FULL = "full"
    UPDATE_MODELS = "update-models"
    CHECK_BALANCE = "check-balance"


class ApiKeyMode(str, Enum):
    LITERAL = "literal"
    ENV = "env"


_MODE_CHOICES = {
    "1": SetupMode.FULL,
    "2": SetupMode.UPDATE_MODELS,
    "3": SetupMode.CHECK_BALANCE,
}


def _default_backend(settings: SetupSettings) -> ConfigBackend:
    return select_backend(
        config_path=settings.openclaw_config_path,
        executable=settings.openclaw_executable,
    )


def print_qr_code(value: str, stdout: TextIO) -> None:
    try:
        result = subprocess.run(
            ["qrencode", "-t", "ANSIUTF8", "-o", "-", "-m", "1", value],
            capture_output=True,
            text=True,
            check=False,
        )
    except OSError:
        result = None
    if result is not None and result.returncode == 0 and result.stdout:
        print("QR Code", file=stdout)
        print("-------", file=stdout)
        print(result.stdout, file=stdout)
        return
    print("QR Code (URL)", file=stdout)
    print(f"{QR_SERVICE_URL}{quote(value, safe='')}", file=stdout)


@dataclass
class SetupContext:
    settings: SetupSettings
    session: InteractiveSession
    stdout: TextIO
    stderr: TextIO
    client_factory: Callable[..., LoyalClient] | None = None
    backend_factory: Callable[[SetupSettings], ConfigBackend] | None = None
    qr_printer: Callable[[str, TextIO], None] | None = None
    api_key_mode: ApiKeyMode | None = None

    def out(self, line: str = "") -> None:
        print(line, file=self.stdout)

    def make_client(
        self,
        server_url: str,
        *,
        api_key: str | None = None,
        identity: LocalIdentity | None = None,
    ) -> LoyalClient:
        factory = self.client_factory or LoyalClient
        return factory(
            server_url=server_url,
            api_key=api_key,
            identity=identity,
            timeout=self.settings.http_timeout,
        )

    def select_backend(self) -> ConfigBackend:
        factory = self.backend_factory or _default_backend
        return factory(self.settings)

    def print_qr(self, value: str) -> None:
        printer = self.qr_printer or print_qr_code
        printer(value, self.stdout)


def print_intro(ctx: SetupContext) -> None:
    settings = ctx.settings
    ctx.out("Loyal OpenClaw Setup")
    ctx.out("--------------------")
    ctx.out()
    ctx.out("This setup updates OpenClaw and Loyal config files (fully reversible).")
    ctx.out("It will create/update:")
    ctx.out(f"  Loyal keys + config: {settings.config_dir}")
    ctx.out(
        f"  OpenClaw config: {settings.openclaw_config_path} (or via the OpenClaw CLI, if installed)"
    )
    ctx.out(f"  OpenClaw env: {settings.openclaw_env_path} ({settings.env_var_name})")
    ctx.out(
        "Revert anytime by removing the Loyal provider entries and env var, "
        "or deleting the Loyal config directory."
    )
    ctx.out()


def choose_setup_mode(session: InteractiveSession, stdout: TextIO) -> SetupMode:
    print("Existing setup detected. What would you like to do?", file=stdout)
    print("  1. Configure everything from the beginning", file=stdout)
    print("  2. Update OpenClaw provider models list only", file=stdout)
    print("  3. Check balance and deposit address", file=stdout)
    while True:
        answer = session.ask("Select 1, 2, or 3", "2").strip()
        if answer in _MODE_CHOICES:
            return _MODE_CHOICES[answer]
        print("Please enter 1, 2, or 3.", file=stdout)


def _stored_api_key(local_config: dict[str, Any]) -> str | None:
    api_key = local_config.get("api_key")
    return api_key if isinstance(api_key, str) and api_key else None


def run_setup(
    ctx: SetupContext,
    *,
    mode: SetupMode | None = None,
    server_url: str | None = None,
) -> None:
    """Run the whole flow; ``mode`` skips the menu for existing setups."""
    print_intro(ctx)
    local_config = load_local_config(ctx.settings)

    if mode is None and has_existing_setup(ctx.settings):
        ctx.out(f"Detected existing Loyal setup in {ctx.settings.config_dir}.")
        mode = choose_setup_mode(ctx.session, ctx.stdout)

    if mode == SetupMode.UPDATE_MODELS:
        run_update_models(ctx, local_config, server_url=server_url)
        return
    if mode == SetupMode.CHECK_BALANCE:
        run_check_balance(ctx, local_config, server_url=server_url)
        return
    ctx.out()
    run_full_setup(ctx, local_config, server_url=server_url)


def run_full_setup(
    ctx: SetupContext,
    local_config: dict[str, Any],
    *,
    server_url: str | None = None,
) -> str:
    settings = ctx.settings
    resolved_url = (
        normalize_server_url(server_url) if server_url else resolve_server_url(settings, local_config)
    )
    ctx.out(f"Server: {resolved_url}")
    ctx.out()

    identity, created = load_or_create_identity(settings)
    ctx.out()
    ctx.out("Keys:" if not created else "Keys (newly generated):")
    ctx.out(f"  Private key: {settings.private_key_path}")
    ctx.out(f"  Public key:  {settings.public_key_path}")
    ctx.out(f"  Public key (base64): {identity.public_key_b64}")

    client = ctx.make_client(resolved_url, identity=identity)
    registration = client.register(identity.public_key_b64)
    ctx.out()
    ctx.out(f"OK: {registration.message}")
    if registration.user_id is not None:
        ctx.out(f"  User ID: {registration.user_id}")

    show_deposit_info(ctx, client)

    api_key = client.create_api_key()
    client.api_key = api_key
    ctx.out()
    ctx.out("OK: Created Bearer API key.")
    ctx.out("API Key (Bearer):")
    ctx.out(api_key)
    ctx.out()
    ctx.out("Note: This key is only shown once.")

    save_local_config(settings, {"server_url": resolved_url, "api_key": api_key})
    ctx.out(f"Stored locally in {settings.local_config_path}")

    ctx.out()
    configure_openclaw(ctx, client, resolved_url, api_key)
    ctx.out()
    ctx.out("Setup complete.")
    return api_key


def run_update_models(
    ctx: SetupContext,
    local_config: dict[str, Any],
    *,
    server_url: str | None = None,
) -> None:
    default_url = resolve_server_url(ctx.settings, local_config)
    resolved_url = normalize_server_url(server_url or ctx.session.ask("Server URL", default_url))
    identity = load_existing_identity(ctx.settings, stderr=ctx.stderr)
    client = ctx.make_client(
        resolved_url,
        api_key=_stored_api_key(local_config),
        identity=identity,
    )
    ctx.out()
    update_openclaw_models(ctx, client)
    ctx.out()
    ctx.out("Update complete.")


def run_check_balance(
    ctx: SetupContext,
    local_config: dict[str, Any],
    *,
    server_url: str | None = None,
) -> None:
    resolved_url = (
        normalize_server_url(server_url)
        if server_url
        else resolve_server_url(ctx.settings, local_config)
    )
    identity = load_existing_identity(ctx.settings, stderr=ctx.stderr)
    client = ctx.make_client(
        resolved_url,
        api_key=_stored_api_key(local_config),
        identity=identity,
    )
    ctx.out()
    show_balance_info(ctx, client)
    show_deposit_info(ctx, client)
    ctx.out()
    ctx.out("Done.")


def show_balance_info(ctx: SetupContext, client: LoyalClient) -> None:
    ctx.out("Balance")
    ctx.out("-------")
    try:
        balance = client.get_balance()
    except RemoteRequestError as exc:
        ctx.out(f"Balance unavailable: {exc}")
        return
    for line in format_balance(balance):
        ctx.out(line)


def _print_deposit_info(ctx: SetupContext, info: DepositInfo) -> None:
    ctx.out()
    ctx.out("Deposit Instructions")
    ctx.out("--------------------")
    if info.network:
        ctx.out(f"Network:  {info.network}")
    if info.currency:
        ctx.out(f"Currency: {info.currency}")
    if info.address:
        ctx.out(f"Deposit:  {info.address}")
    if info.your_wallet:
        ctx.out(f"Your wallet: {info.your_wallet}")
    if info.instructions:
        ctx.out()
        ctx.out(info.instructions)
    if info.note:
        ctx.out()
        ctx.out(f"Note: {info.note}")
    if info.address:
        ctx.out()
        ctx.print_qr(info.address)


def show_deposit_info(ctx: SetupContext, client: LoyalClient) -> None:
    try:
        info = client.get_deposit_info()
    except RemoteRequestError as exc:
        ctx.out()
        ctx.out(f"Deposit info unavailable: {exc}")
        return
    _print_deposit_info(ctx, info)


def fetch_models(ctx: SetupContext, client: LoyalClient) -> list[ModelDescriptor]:
    try:
        return client.list_models()
    except RemoteRequestError as exc:
        ctx.out(str(exc))
        return []


def choose_model_id(ctx: SetupContext, models: list[ModelDescriptor]) -> str:
    if not models:
        ctx.out("No models were returned by the server.")
        return ctx.session.ask("Model ID to expose (leave blank to skip)", "").strip()

    ctx.out()
    ctx.out("Available models:")
    for index, model in enumerate(models, start=1):
        ctx.out(f"  {index}. {model.label}")

    by_id = {model.id: model for model in models}
    while True:
        answer = ctx.session.ask(f"Select model (1-{len(models)}, Enter to skip)", "").strip()
        if not answer:
            return ""
        if answer.isdigit() and 1 <= int(answer) <= len(models):
            return models[int(answer) - 1].id
        if answer in by_id:
            return answer
        ctx.out("Invalid selection. Try again.")


def _resolve_api_key_mode(ctx: SetupContext) -> ApiKeyMode:
    if ctx.api_key_mode is not None:
        return ctx.api_key_mode
    store_literal = ctx.session.confirm(
        "Store the API key directly in the OpenClaw config "
        f"(otherwise reference ${{{ctx.settings.env_var_name}}})?",
        True,
    )
    return ApiKeyMode.LITERAL if store_literal else ApiKeyMode.ENV


def _apply_operations(
    ctx: SetupContext,
    backend: ConfigBackend,
    build: Callable[[], list[ConfigSet]],
) -> bool:
    try:
        backend.apply(build())
    except ConfigParseError as exc:
        ctx.out(f"{exc}. Skipping automatic edits.")
        ctx.out("Use the OpenClaw CLI (openclaw config set) or edit manually.")
        return False
    return True


def configure_openclaw(
    ctx: SetupContext,
    client: LoyalClient,
    server_url: str,
    api_key: str | None,
) -> bool:
    settings = ctx.settings
    provider = settings.provider
    model_id = choose_model_id(ctx, fetch_models(ctx, client))
    if not model_id:
        ctx.out("Skipping OpenClaw config (no model id provided).")
        return False

    env_var_name = settings.env_var_name
    placeholder = env_placeholder(env_var_name)
    if api_key:
        key_mode = _resolve_api_key_mode(ctx)
        upsert_env_var(settings.openclaw_env_path, env_var_name, api_key)
        ctx.out(f"OK: Wrote {env_var_name} to {settings.openclaw_env_path}")
        api_key_value = api_key if key_mode == ApiKeyMode.LITERAL else placeholder
    else:
        ctx.out()
        ctx.out(f"No API key was created during setup. You'll need to set {env_var_name} later.")
        api_key_value = placeholder

    update = ProviderUpdate(
        provider=provider,
        base_url=join_url(server_url, "/v1"),
        api_key_value=api_key_value,
        model_id=model_id,
        model_name=settings.model_name,
    )
    backend = ctx.select_backend()
    ctx.out(f"Configuring OpenClaw via {backend.description}...")

    def provider_operations() -> list[ConfigSet]:
        exists = backend.has_path(provider_config_path(provider))
        return build_provider_operations(update, provider_exists=exists)

    if not _apply_operations(ctx, backend, provider_operations):
        return False

    ctx.out(f"OK: Set models.providers.{provider}.baseUrl to {update.base_url}")
    if api_key_value == placeholder:
        ctx.out(f"OK: Configured {provider} API key to use {env_var_name}.")
    else:
        ctx.out(f"OK: Stored {provider} API key directly in the OpenClaw config.")
    ctx.out(f"OK: Set agents.defaults.model.primary to {update.qualified_model}")
    ctx.out(f"OK: Added {update.qualified_model} to agents.defaults.models allowlist")
    ctx.out('OK: Set models.mode to "merge"')
    ctx.out("Restart the OpenClaw gateway to apply changes.")
    return True


def update_openclaw_models(ctx: SetupContext, client: LoyalClient) -> bool:
    models = fetch_models(ctx, client)
    if not models:
        ctx.out("No models were returned by the server. Skipping OpenClaw updates.")
        return False

    backend = ctx.select_backend()
    ctx.out(f"Updating OpenClaw via {backend.description}...")
    models_config = build_provider_models(models)
    if not _apply_operations(
        ctx,
        backend,
        lambda: build_models_operations(ctx.settings.provider, models_config),
    ):
        return False
    ctx.out("OK: OpenClaw model list updated.")
    ctx.out("Restart the OpenClaw gateway to apply changes.")
    return True
