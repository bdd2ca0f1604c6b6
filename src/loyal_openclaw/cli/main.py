"""Command-line interface for loyal-openclaw."""

from __future__ import annotations

import argparse
import importlib.util
import json
import re
import sys
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as pkg_version
from typing import Mapping, Sequence

from loyal_openclaw.cli.config import (
    SetupSettings,
    load_local_config,
    load_settings,
    normalize_server_url,
    resolve_server_url,
)
from loyal_openclaw.cli.identity import load_existing_identity
from loyal_openclaw.cli.session import InteractiveSession, TerminalSession
from loyal_openclaw.cli.setup_flow import ApiKeyMode, SetupContext, SetupMode, run_setup
from loyal_openclaw.client import LoyalClient
from loyal_openclaw.errors import LoyalSetupError, RemoteRequestError
from loyal_openclaw.signing import (
    build_endpoint,
    build_signed_request,
    parse_signature_header,
    verify_request_signature,
)

EXIT_SUCCESS = 0
EXIT_FAILURE = 1

_SENSITIVE_FIELDS = (
    "api_key",
    "apikey",
    "private_key",
    "secret",
    "token",
    "authorization",
)


def _sdk_version() -> str:
    try:
        return pkg_version("loyal-openclaw-setup")
    except PackageNotFoundError:
        return "0.0.0+local"


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="loyal-openclaw",
        description="Provision a Loyal identity and configure OpenClaw to use it.",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"loyal-openclaw {_sdk_version()}",
    )

    sub = parser.add_subparsers(dest="command")

    setup = sub.add_parser("setup", help="Run the interactive setup (default command)")
    setup.add_argument(
        "--server-url",
        default=None,
        help="Server URL (default: stored value, LOYAL_SERVER_URL, or the built-in server)",
    )
    setup.add_argument(
        "--api-key-mode",
        choices=[mode.value for mode in ApiKeyMode],
        default=None,
        help="Write the API key literally into the OpenClaw config, or as ${LOYAL_API_KEY}",
    )

    models = sub.add_parser("models", help="Update the OpenClaw provider model list only")
    models.add_argument("--server-url", default=None)

    balance = sub.add_parser("balance", help="Show balance and deposit instructions")
    balance.add_argument("--server-url", default=None)

    wallet = sub.add_parser("wallet", help="Register the Solana wallet deposits come from")
    wallet.add_argument("--address", required=True, help="Solana wallet address")
    wallet.add_argument("--server-url", default=None)

    identity = sub.add_parser("identity", help="Show the local identity")
    identity.add_argument(
        "--self-test",
        action="store_true",
        help="Sign a sample request and verify it against the public key",
    )
    identity.add_argument("--json", action="store_true")

    version = sub.add_parser("version", help="Show CLI version")
    version.add_argument("--json", action="store_true")

    return parser


def _sanitize_error_text(value: str) -> str:
    redacted = value
    for field_name in _SENSITIVE_FIELDS:
        redacted = re.sub(
            rf"(?i)({field_name}\s*[=:]\s*)([^,\s]+)",
            r"\1[REDACTED]",
            redacted,
        )
    redacted = re.sub(r"(?i)(Bearer\s+)(\S+)", r"\1[REDACTED]", redacted)
    redacted = re.sub(r"(?i)([?&](?:secret|token|api_key)=)([^&\s]+)", r"\1[REDACTED]", redacted)
    return redacted


def _print_error(stderr, prefix: str, message: str, *, code: int) -> int:
    print(f"{prefix}: {_sanitize_error_text(message)}", file=stderr)
    return code


def _requests_available() -> bool:
    return importlib.util.find_spec("requests") is not None


def _run_version(*, as_json: bool, stdout) -> int:
    payload = {"cli": "loyal-openclaw", "version": _sdk_version()}
    if as_json:
        print(json.dumps(payload, sort_keys=True), file=stdout)
    else:
        print(f"loyal-openclaw {payload['version']}", file=stdout)
    return EXIT_SUCCESS


def _run_identity(*, args, settings: SetupSettings, stdout, stderr) -> int:
    identity = load_existing_identity(settings, stderr=stderr)
    if identity is None:
        return _print_error(
            stderr,
            "identity error",
            f"no usable identity in {settings.config_dir}; run `loyal-openclaw setup` first",
            code=EXIT_FAILURE,
        )

    payload: dict[str, object] = {
        "private_key_path": str(settings.private_key_path),
        "public_key_path": str(settings.public_key_path),
        "public_key_b64": identity.public_key_b64,
    }
    if args.self_test:
        server_url = resolve_server_url(settings, load_local_config(settings))
        _, signed_path = build_endpoint(server_url, "/v1/balance")
        signed = build_signed_request(identity, "GET", signed_path)
        public_key_b64, timestamp, signature_b64 = parse_signature_header(
            signed.authorization_header
        )
        payload["self_test"] = public_key_b64 == identity.public_key_b64 and verify_request_signature(
            public_key_b64, signed.method, signed_path, timestamp, signature_b64
        )

    if args.json:
        print(json.dumps(payload, sort_keys=True), file=stdout)
    else:
        print(f"private_key_path: {payload['private_key_path']}", file=stdout)
        print(f"public_key_path: {payload['public_key_path']}", file=stdout)
        print(f"public_key_b64: {payload['public_key_b64']}", file=stdout)
        if "self_test" in payload:
            print(f"self_test: {'ok' if payload['self_test'] else 'failed'}", file=stdout)
    if args.self_test and not payload["self_test"]:
        return EXIT_FAILURE
    return EXIT_SUCCESS


def _run_wallet(*, args, settings: SetupSettings, stdout, stderr) -> int:
    address = args.address.strip()
    if not address:
        return _print_error(stderr, "wallet error", "wallet address must not be empty", code=EXIT_FAILURE)
    identity = load_existing_identity(settings, stderr=stderr)
    if identity is None:
        return _print_error(
            stderr,
            "identity error",
            "no usable identity; run `loyal-openclaw setup` first",
            code=EXIT_FAILURE,
        )
    local_config = load_local_config(settings)
    server_url = (
        normalize_server_url(args.server_url)
        if args.server_url
        else resolve_server_url(settings, local_config)
    )
    client = LoyalClient(server_url=server_url, identity=identity, timeout=settings.http_timeout)
    try:
        message = client.set_wallet(address)
    except RemoteRequestError as exc:
        return _print_error(stderr, "server error", str(exc), code=EXIT_FAILURE)
    print(f"OK: {message}", file=stdout)
    return EXIT_SUCCESS


def main(
    argv: Sequence[str] | None = None,
    *,
    stdout=sys.stdout,
    stderr=sys.stderr,
    session: InteractiveSession | None = None,
    environ: Mapping[str, str] | None = None,
    home: str | None = None,
) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    command = args.command or "setup"

    if command == "version":
        return _run_version(as_json=args.json, stdout=stdout)

    if not _requests_available():
        return _print_error(
            stderr,
            "environment error",
            "the requests package is required (pip install requests)",
            code=EXIT_FAILURE,
        )

    try:
        settings = load_settings(environ, home=home)
        if command == "identity":
            return _run_identity(args=args, settings=settings, stdout=stdout, stderr=stderr)
        if command == "wallet":
            return _run_wallet(args=args, settings=settings, stdout=stdout, stderr=stderr)
    except (LoyalSetupError, OSError) as exc:
        return _print_error(stderr, "error", str(exc), code=EXIT_FAILURE)

    mode = {
        "models": SetupMode.UPDATE_MODELS,
        "balance": SetupMode.CHECK_BALANCE,
    }.get(command)
    api_key_mode = getattr(args, "api_key_mode", None)
    owned_session = session is None
    active_session = session or TerminalSession()
    try:
        ctx = SetupContext(
            settings=settings,
            session=active_session,
            stdout=stdout,
            stderr=stderr,
            api_key_mode=ApiKeyMode(api_key_mode) if api_key_mode else None,
        )
        run_setup(ctx, mode=mode, server_url=getattr(args, "server_url", None))
    except (LoyalSetupError, OSError) as exc:
        print("", file=stderr)
        return _print_error(stderr, "Setup failed", str(exc), code=EXIT_FAILURE)
    finally:
        if owned_session and isinstance(active_session, TerminalSession):
            active_session.close()
    return EXIT_SUCCESS


if __name__ == "__main__":
    raise SystemExit(main())
