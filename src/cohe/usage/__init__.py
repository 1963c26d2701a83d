"""Provider usage fetching and normalization."""

from cohe.usage.fetcher import UsageFetcher, UsageSource
from cohe.usage.models import (
    MiniMaxRemainsResponse,
    ProviderUsageResponse,
    Usage,
    ZaiQuotaResponse,
    parse_usage_response,
)
from cohe.usage.normalize import normalize_minimax, normalize_usage, normalize_zai


__all__ = [
    "MiniMaxRemainsResponse",
    "ProviderUsageResponse",
    "Usage",
    "UsageFetcher",
    "UsageSource",
    "ZaiQuotaResponse",
    "normalize_minimax",
    "normalize_usage",
    "normalize_zai",
    "parse_usage_response",
]
