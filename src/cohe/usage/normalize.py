"""Pure conversions from provider quota responses to :class:`Usage`."""

from cohe.usage.models import (
    MiniMaxRemainsResponse,
    ProviderUsageResponse,
    Usage,
    ZaiLimit,
    ZaiQuotaResponse,
)


ZAI_TOKENS_LIMIT = "TOKENS_LIMIT"
ZAI_TIME_LIMIT = "TIME_LIMIT"


def _normalize_zai_limit(entry: ZaiLimit) -> Usage:
    if entry.current_value is None or entry.usage is None:
        # Token limits are sometimes reported as a bare percentage.
        return Usage(percent_used=entry.percentage or 0)

    used = entry.current_value
    limit = entry.usage
    remaining = entry.remaining if entry.remaining is not None else max(0, limit - used)
    if entry.percentage is not None:
        percent_used = entry.percentage
    else:
        percent_used = (used / limit) * 100 if limit > 0 else 0
    return Usage(used=used, limit=limit, remaining=remaining, percent_used=percent_used)


def normalize_zai(response: ZaiQuotaResponse) -> Usage:
    """Token limit becomes the primary usage, the time limit the MCP usage."""
    limits = response.data.limits if response.data else []
    token_limit = next((e for e in limits if e.type == ZAI_TOKENS_LIMIT), None)
    time_limit = next((e for e in limits if e.type == ZAI_TIME_LIMIT), None)

    if token_limit is None and time_limit is None:
        return Usage.zero()

    model_usage = _normalize_zai_limit(token_limit) if token_limit else Usage.zero()
    mcp_usage = _normalize_zai_limit(time_limit) if time_limit else Usage.zero()

    return Usage(
        used=model_usage.used,
        limit=model_usage.limit,
        remaining=model_usage.remaining,
        percent_used=model_usage.percent_used,
        model_usage=model_usage,
        mcp_usage=mcp_usage,
    )


def normalize_minimax(response: MiniMaxRemainsResponse) -> Usage:
    if response.base_resp is None or response.base_resp.status_code != 0:
        return Usage.zero()
    if not response.model_remains:
        return Usage.zero()

    entry = response.model_remains[0]
    limit = entry.current_interval_total_count
    remaining = max(0, entry.current_interval_usage_count)
    used = max(0, limit - remaining)
    percent_used = (used / limit) * 100 if limit > 0 else 0
    return Usage(used=used, limit=limit, remaining=remaining, percent_used=percent_used)


def normalize_usage(response: ProviderUsageResponse) -> Usage:
    if isinstance(response, ZaiQuotaResponse):
        return normalize_zai(response)
    return normalize_minimax(response)
