"""Tests for provider usage normalization."""

import pytest
from pydantic import ValidationError

from cohe.usage.models import (
    MiniMaxRemainsResponse,
    ZaiQuotaResponse,
    parse_usage_response,
)
from cohe.usage.normalize import normalize_minimax, normalize_usage, normalize_zai


def zai(*limits: dict) -> ZaiQuotaResponse:
    return ZaiQuotaResponse.model_validate({"code": 200, "data": {"limits": list(limits)}})


def minimax(total: float, available: float, status_code: int = 0) -> MiniMaxRemainsResponse:
    return MiniMaxRemainsResponse.model_validate(
        {
            "model_remains": [
                {
                    "model_name": "MiniMax-M2.1",
                    "current_interval_total_count": total,
                    "current_interval_usage_count": available,
                }
            ],
            "base_resp": {"status_code": status_code, "status_msg": ""},
        }
    )


@pytest.mark.unit
class TestNormalizeZai:
    def test_token_and_time_limits(self) -> None:
        usage = normalize_zai(
            zai(
                {
                    "type": "TOKENS_LIMIT",
                    "usage": 1000,
                    "currentValue": 250,
                    "remaining": 750,
                    "percentage": 25,
                },
                {
                    "type": "TIME_LIMIT",
                    "usage": 100,
                    "currentValue": 60,
                    "remaining": 40,
                    "percentage": 60,
                },
            )
        )

        assert (usage.used, usage.limit, usage.remaining, usage.percent_used) == (
            250,
            1000,
            750,
            25,
        )
        assert usage.model_usage is not None
        assert usage.model_usage.percent_used == 25
        assert usage.mcp_usage is not None
        assert usage.mcp_usage.used == 60
        assert usage.comparison_percent == 60

    def test_percentage_only_token_limit(self) -> None:
        usage = normalize_zai(zai({"type": "TOKENS_LIMIT", "percentage": 37}))

        assert (usage.used, usage.limit, usage.remaining, usage.percent_used) == (
            0,
            0,
            0,
            37,
        )
        assert usage.is_known

    def test_percentage_computed_when_missing(self) -> None:
        usage = normalize_zai(
            zai({"type": "TIME_LIMIT", "usage": 200, "currentValue": 50})
        )

        assert usage.mcp_usage is not None
        assert usage.mcp_usage.percent_used == 25
        assert usage.mcp_usage.remaining == 150

    def test_no_known_limits_is_zero(self) -> None:
        usage = normalize_zai(zai({"type": "SOMETHING_ELSE", "usage": 1}))

        assert not usage.is_known
        assert usage.model_usage is None

    def test_missing_data_is_zero(self) -> None:
        assert not normalize_zai(ZaiQuotaResponse.model_validate({"code": 500})).is_known


@pytest.mark.unit
class TestNormalizeMiniMax:
    def test_available_count_is_remaining(self) -> None:
        usage = normalize_minimax(minimax(total=1500, available=1200))

        assert usage.limit == 1500
        assert usage.remaining == 1200
        assert usage.used == 300
        assert usage.percent_used == pytest.approx(20)

    def test_error_status_is_zero(self) -> None:
        assert not normalize_minimax(minimax(1500, 1200, status_code=1004)).is_known

    def test_empty_model_remains_is_zero(self) -> None:
        response = MiniMaxRemainsResponse.model_validate(
            {"model_remains": [], "base_resp": {"status_code": 0}}
        )

        assert not normalize_minimax(response).is_known

    def test_zero_total_has_zero_percent(self) -> None:
        usage = normalize_minimax(minimax(total=0, available=0))

        assert usage.percent_used == 0


@pytest.mark.unit
class TestParseUsageResponse:
    def test_dispatches_on_provider(self) -> None:
        parsed = parse_usage_response(
            "minimax",
            {
                "model_remains": [
                    {
                        "current_interval_total_count": 10,
                        "current_interval_usage_count": 5,
                    }
                ],
                "base_resp": {"status_code": 0},
            },
        )

        assert isinstance(parsed, MiniMaxRemainsResponse)
        assert normalize_usage(parsed).used == 5

    def test_rejects_non_object(self) -> None:
        with pytest.raises(ValueError):
            parse_usage_response("zai", [1, 2])

    def test_rejects_malformed_limit(self) -> None:
        with pytest.raises(ValidationError):
            parse_usage_response("zai", {"data": {"limits": [{"usage": 5}]}})
