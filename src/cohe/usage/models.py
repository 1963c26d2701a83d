"""Normalized usage snapshots and raw provider quota responses."""

from dataclasses import dataclass
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


@dataclass(frozen=True)
class Usage:
    """Normalized quota snapshot.

    A zero ``limit`` means the numbers are unknown, not that the quota is
    untouched.
    """

    used: float = 0
    limit: float = 0
    remaining: float = 0
    percent_used: float = 0
    model_usage: "Usage | None" = None
    mcp_usage: "Usage | None" = None

    @classmethod
    def zero(cls) -> "Usage":
        return cls()

    @property
    def is_known(self) -> bool:
        """Whether the snapshot carries real data.

        Z.AI may report only a percentage for its token limit, so a positive
        percentage counts even when the limit is 0.
        """
        return self.limit > 0 or self.percent_used > 0

    @property
    def comparison_percent(self) -> float:
        """The single percentage used for rotation and alerting.

        The secondary (MCP, time window) quota wins when a provider reports
        one; otherwise the primary percentage is used.
        """
        if self.mcp_usage is not None:
            return self.mcp_usage.percent_used
        return self.percent_used

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "used": self.used,
            "limit": self.limit,
            "remaining": self.remaining,
            "percentUsed": self.percent_used,
        }
        if self.model_usage is not None:
            data["modelUsage"] = self.model_usage.to_dict()
        if self.mcp_usage is not None:
            data["mcpUsage"] = self.mcp_usage.to_dict()
        return data


# --- Z.AI ---


class ZaiLimit(BaseModel):
    """One entry of the Z.AI ``data.limits`` array."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    type: str
    usage: float | None = None  # the limit
    current_value: float | None = Field(default=None, alias="currentValue")
    remaining: float | None = None
    percentage: float | None = None


class ZaiQuotaData(BaseModel):
    model_config = ConfigDict(extra="ignore")

    limits: list[ZaiLimit] = Field(default_factory=list)


class ZaiQuotaResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    provider: Literal["zai"] = "zai"
    code: int | None = None
    data: ZaiQuotaData | None = None


# --- MiniMax ---


class MiniMaxModelRemain(BaseModel):
    """Per-model entry of the MiniMax ``model_remains`` array.

    ``current_interval_usage_count`` is the count still available in the
    current interval.
    """

    model_config = ConfigDict(extra="ignore")

    model_name: str = ""
    current_interval_total_count: float
    current_interval_usage_count: float


class MiniMaxBaseResp(BaseModel):
    model_config = ConfigDict(extra="ignore")

    status_code: int
    status_msg: str = ""


class MiniMaxRemainsResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    provider: Literal["minimax"] = "minimax"
    model_remains: list[MiniMaxModelRemain] = Field(default_factory=list)
    base_resp: MiniMaxBaseResp | None = None


ProviderUsageResponse = Annotated[
    ZaiQuotaResponse | MiniMaxRemainsResponse,
    Field(discriminator="provider"),
]

_response_adapter: TypeAdapter[ProviderUsageResponse] = TypeAdapter(
    ProviderUsageResponse
)


def parse_usage_response(provider: str, payload: Any) -> ProviderUsageResponse:
    """Validate a raw JSON payload into the provider's response model.

    Raises:
        pydantic.ValidationError: If the payload does not match the shape
        ValueError: If the payload is not a JSON object
    """
    if not isinstance(payload, dict):
        raise ValueError(f"Expected JSON object, got {type(payload).__name__}")
    return _response_adapter.validate_python({**payload, "provider": provider})
