"""Normalized shapes for Loyal server responses.

The server answers some endpoints in more than one shape. Everything is parsed
into the models below at the client boundary.
"""

from __future__ import annotations

import json
from typing import Any, Iterable, Optional

from pydantic import BaseModel, ConfigDict, Field

_DEPOSIT_ADDRESS_KEYS = ("deposit_wallet", "deposit_address", "address")
_BALANCE_AMOUNT_KEYS = ("balance", "available_balance", "available", "amount", "value")


class ModelDescriptor(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1)
    name: Optional[str] = None

    @property
    def label(self) -> str:
        if self.name and self.name != self.id:
            return f"{self.id} ({self.name})"
        return self.id


class RegistrationResult(BaseModel):
    message: str = "Registered"
    user_id: Optional[str] = None

    @classmethod
    def from_response(cls, data: Any) -> "RegistrationResult":
        if not isinstance(data, dict):
            return cls()
        user = data.get("user")
        user_id = user.get("id") if isinstance(user, dict) else None
        message = data.get("message")
        return cls(
            message=str(message) if message else "Registered",
            user_id=str(user_id) if user_id is not None else None,
        )


class DepositInfo(BaseModel):
    network: Optional[str] = None
    currency: Optional[str] = None
    address: Optional[str] = None
    instructions: Optional[str] = None
    note: Optional[str] = None
    your_wallet: Optional[str] = None

    @classmethod
    def from_response(cls, data: Any) -> "DepositInfo":
        if not isinstance(data, dict):
            return cls()
        address = next((data[key] for key in _DEPOSIT_ADDRESS_KEYS if data.get(key)), None)

        def _text(key: str) -> str | None:
            value = data.get(key)
            return str(value) if value else None

        return cls(
            network=_text("network"),
            currency=_text("currency"),
            address=str(address) if address else None,
            instructions=_text("instructions"),
            note=_text("note"),
            your_wallet=_text("your_wallet"),
        )


def _raw_model_items(data: Any) -> list[Any]:
    if isinstance(data, list):
        return data
    if isinstance(data, dict):
        for key in ("data", "models"):
            if isinstance(data.get(key), list):
                return data[key]
    return []


def _model_from_item(item: Any) -> ModelDescriptor | None:
    if isinstance(item, str):
        return ModelDescriptor(id=item) if item else None
    if not isinstance(item, dict):
        return None
    model_id = item.get("id") or item.get("model") or item.get("name")
    if not model_id or not isinstance(model_id, str):
        return None
    name = item.get("name") or item.get("display_name")
    return ModelDescriptor(id=model_id, name=str(name) if name else None)


def normalize_model_list(data: Any) -> list[ModelDescriptor]:
    models = []
    for item in _raw_model_items(data):
        model = _model_from_item(item)
        if model is not None:
            models.append(model)
    return models


def build_provider_models(models: Iterable[ModelDescriptor]) -> list[dict[str, str]]:
    seen: set[str] = set()
    entries = []
    for model in models:
        if model.id in seen:
            continue
        seen.add(model.id)
        entries.append({"id": model.id, "name": model.name or model.id})
    return entries


def format_balance(data: Any) -> list[str]:
    if data is None:
        return ["Unknown"]
    if isinstance(data, dict):
        amount = next(
            (data[key] for key in _BALANCE_AMOUNT_KEYS if data.get(key) is not None),
            None,
        )
        if amount is None:
            return json.dumps(data, indent=2).splitlines()
        currency = data.get("currency") or data.get("unit") or ""
        return [f"{amount} {currency}" if currency else str(amount)]
    return [str(data)]
