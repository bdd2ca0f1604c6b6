"""HTTP client for the Loyal server endpoints."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from loyal_openclaw.errors import EnvironmentCapabilityError, RemoteRequestError
from loyal_openclaw.schemas import (
    DepositInfo,
    ModelDescriptor,
    RegistrationResult,
    normalize_model_list,
)
from loyal_openclaw.signing import build_bearer_header, build_endpoint, build_signed_request

if TYPE_CHECKING:
    from loyal_openclaw.cli.identity import LocalIdentity

DEFAULT_TIMEOUT = 30.0


@dataclass(frozen=True)
class FetchResult:
    ok: bool
    data: Any
    status_code: int | None = None


def format_error(data: Any) -> str:
    if not data:
        return "Unknown error"
    if isinstance(data, str):
        return data
    if isinstance(data, dict):
        error = data.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if data.get("message"):
            return str(data["message"])
    try:
        return json.dumps(data)
    except (TypeError, ValueError):
        return str(data)


@dataclass
class LoyalClient:
    server_url: str
    api_key: str | None = None
    identity: LocalIdentity | None = None
    timeout: float = DEFAULT_TIMEOUT

    def __post_init__(self) -> None:
        try:
            import requests
        except Exception as exc:  # pragma: no cover
            raise EnvironmentCapabilityError(f"requests stack unavailable: {exc}") from exc

        self._requests = requests
        self._session = requests.Session()

    def request(
        self,
        url: str,
        method: str,
        *,
        headers: dict[str, str] | None = None,
        body: Any = None,
    ) -> FetchResult:
        """Perform one HTTP round-trip; connection failures come back as ``ok=False``."""
        try:
            response = self._session.request(
                method,
                url,
                headers=headers,
                data=json.dumps(body) if body is not None else None,
                timeout=self.timeout,
            )
        except self._requests.RequestException as exc:
            return FetchResult(ok=False, data=f"Network error: {exc}")

        content_type = response.headers.get("content-type", "") or ""
        data: Any
        if "application/json" in content_type:
            try:
                data = response.json()
            except ValueError:
                data = response.text
        else:
            data = response.text
        ok = 200 <= response.status_code < 300
        return FetchResult(ok=ok, data=data, status_code=response.status_code)

    def _raise_for(self, result: FetchResult, *, prefix: str | None = None) -> Any:
        if result.ok:
            return result.data
        message = format_error(result.data)
        raise RemoteRequestError(
            f"{prefix}: {message}" if prefix else message,
            status_code=result.status_code,
            body=result.data,
        )

    def signed_request(self, method: str, path: str, *, body: Any = None) -> Any:
        if self.identity is None:
            raise RemoteRequestError("No signing key available for this request.")
        url, signed_path = build_endpoint(self.server_url, path)
        signed = build_signed_request(self.identity, method, signed_path)
        headers = {
            "Authorization": signed.authorization_header,
            "Content-Type": "application/json",
        }
        return self._raise_for(self.request(url, signed.method, headers=headers, body=body))

    def bearer_request(self, method: str, path: str) -> Any:
        if not self.api_key:
            raise RemoteRequestError("No API key available for this request.")
        url, _ = build_endpoint(self.server_url, path)
        headers = {"Authorization": build_bearer_header(self.api_key)}
        return self._raise_for(self.request(url, method, headers=headers))

    def _signed_then_bearer(self, path: str, *, what: str) -> Any:
        if self.identity is not None:
            try:
                return self.signed_request("GET", path)
            except RemoteRequestError:
                if not self.api_key:
                    raise
        if self.api_key:
            return self.bearer_request("GET", path)
        raise RemoteRequestError(f"No authentication available for {what}.")

    def register(self, public_key_b64: str) -> RegistrationResult:
        url, _ = build_endpoint(self.server_url, "/v1/register")
        result = self.request(
            url,
            "POST",
            headers={"Content-Type": "application/json"},
            body={"public_key": public_key_b64},
        )
        data = self._raise_for(result, prefix="Registration failed")
        return RegistrationResult.from_response(data)

    def set_wallet(self, solana_wallet: str) -> str:
        data = self.signed_request("POST", "/v1/wallet", body={"solana_wallet": solana_wallet})
        if isinstance(data, dict) and data.get("message"):
            return str(data["message"])
        return "Wallet updated"

    def create_api_key(self) -> str:
        data = self.signed_request("POST", "/v1/api-keys")
        api_key = data.get("api_key") if isinstance(data, dict) else None
        if not isinstance(api_key, str) or not api_key:
            raise RemoteRequestError("invalid api-keys response (missing api_key)", body=data)
        return api_key

    def get_deposit_info(self) -> DepositInfo:
        return DepositInfo.from_response(self._signed_then_bearer("/v1/deposit", what="deposit info"))

    def get_balance(self) -> Any:
        return self._signed_then_bearer("/v1/balance", what="balance check")

    def list_models(self) -> list[ModelDescriptor]:
        url, _ = build_endpoint(self.server_url, "/v1/models")
        headers = {"Authorization": build_bearer_header(self.api_key)} if self.api_key else None
        result = self.request(url, "GET", headers=headers)

        if not result.ok and self.identity is not None:
            try:
                return normalize_model_list(self.signed_request("GET", "/v1/models"))
            except RemoteRequestError as exc:
                result = FetchResult(ok=False, data=str(exc), status_code=exc.status_code)

        data = self._raise_for(result, prefix="Unable to fetch models")
        return normalize_model_list(data)


__all__ = ["FetchResult", "LoyalClient", "format_error"]
