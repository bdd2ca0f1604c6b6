from __future__ import annotations

import pytest

from loyal_openclaw.schemas import (
    DepositInfo,
    ModelDescriptor,
    RegistrationResult,
    build_provider_models,
    format_balance,
    normalize_model_list,
)


@pytest.mark.parametrize(
    "payload",
    [
        [{"id": "m1"}, {"id": "m2"}],
        {"data": [{"id": "m1"}, {"id": "m2"}]},
        {"models": [{"model": "m1"}, "m2"]},
    ],
)
def test_normalize_model_list_accepts_all_shapes(payload: object) -> None:
    assert [model.id for model in normalize_model_list(payload)] == ["m1", "m2"]


def test_normalize_model_list_drops_unusable_items() -> None:
    models = normalize_model_list([None, 3, {}, {"name": "named"}, "", {"id": "x", "display_name": "X"}])
    assert [(model.id, model.name) for model in models] == [("named", "named"), ("x", "X")]


def test_normalize_model_list_handles_unknown_shapes() -> None:
    assert normalize_model_list(None) == []
    assert normalize_model_list({"unexpected": []}) == []
    assert normalize_model_list("m1") == []


def test_build_provider_models_dedups_first_occurrence_wins() -> None:
    models = [ModelDescriptor(id="a"), ModelDescriptor(id="b"), ModelDescriptor(id="a", name="A2")]
    assert build_provider_models(models) == [
        {"id": "a", "name": "a"},
        {"id": "b", "name": "b"},
    ]


def test_model_label_includes_distinct_name() -> None:
    assert ModelDescriptor(id="m1", name="Model One").label == "m1 (Model One)"
    assert ModelDescriptor(id="m1", name="m1").label == "m1"


@pytest.mark.parametrize(
    ("data", "expected"),
    [
        (None, ["Unknown"]),
        (12.5, ["12.5"]),
        ("3 USDC", ["3 USDC"]),
        ({"balance": 4, "currency": "USDC"}, ["4 USDC"]),
        ({"available_balance": 0, "unit": "SOL"}, ["0 SOL"]),
        ({"amount": "9"}, ["9"]),
    ],
)
def test_format_balance(data: object, expected: list[str]) -> None:
    assert format_balance(data) == expected


def test_format_balance_dumps_unknown_objects() -> None:
    assert format_balance({"credits": 1}) == ["{", '  "credits": 1', "}"]


def test_deposit_info_picks_first_address_field() -> None:
    info = DepositInfo.from_response(
        {"deposit_address": "second", "address": "third", "currency": "USDC", "note": ""}
    )
    assert info.address == "second"
    assert info.currency == "USDC"
    assert info.note is None

    assert DepositInfo.from_response({"deposit_wallet": "first", "address": "x"}).address == "first"
    assert DepositInfo.from_response("not an object") == DepositInfo()


def test_registration_result_from_response() -> None:
    result = RegistrationResult.from_response({"message": "Already registered", "user": {"id": "u1"}})
    assert result.message == "Already registered"
    assert result.user_id == "u1"
    assert RegistrationResult.from_response(None).user_id is None
