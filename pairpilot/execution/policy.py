"""Trading policy: a closed union of spot and derivatives configurations.

Policies are frozen pydantic models. Updates never mutate a policy in place;
``merge_policy`` builds and validates a replacement.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, field_validator

from pairpilot.utils.constants import DEFAULT_ALLOWED_SYMBOLS


class PolicyValidationError(ValueError):
    """A policy update that does not produce a valid policy."""


class RiskParameters(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    max_position_size: float = Field(default=100.0, gt=0, description="Max notional per trade (quote asset)")
    max_leverage: int = Field(default=1, ge=1, le=125)
    stop_loss_percent: float = Field(default=2.0, gt=0, lt=100)
    take_profit_percent: float = Field(default=4.0, gt=0)
    max_daily_loss: float = Field(default=200.0, ge=0, description="Realized loss that halts trading for the day")
    max_drawdown_percent: float = Field(default=10.0, gt=0, le=100)


class DerivativesParameters(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    margin_type: Literal["ISOLATED", "CROSSED"] = "ISOLATED"
    default_leverage: int = Field(default=3, ge=1, le=125)
    max_open_positions: int = Field(default=5, ge=1)
    max_loss_per_position: float = Field(default=50.0, ge=0)
    hedge_mode: bool = False


class _PolicyBase(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    enabled: bool = False
    test_mode: bool = True
    allowed_symbols: frozenset[str] = frozenset(DEFAULT_ALLOWED_SYMBOLS)
    risk_parameters: RiskParameters = Field(default_factory=RiskParameters)

    @field_validator("allowed_symbols", mode="before")
    @classmethod
    def _normalize_symbols(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = value.split(",")
        if isinstance(value, (list, tuple, set, frozenset)):
            return frozenset(str(s).strip().upper() for s in value if str(s).strip())
        return value


class SpotPolicy(_PolicyBase):
    mode: Literal["spot"] = "spot"


class DerivativesPolicy(_PolicyBase):
    mode: Literal["derivatives"] = "derivatives"
    derivatives_parameters: DerivativesParameters = Field(default_factory=DerivativesParameters)


TradingPolicy = Annotated[Union[SpotPolicy, DerivativesPolicy], Field(discriminator="mode")]

_POLICY_ADAPTER: TypeAdapter[SpotPolicy | DerivativesPolicy] = TypeAdapter(TradingPolicy)


def parse_policy(data: dict[str, Any]) -> SpotPolicy | DerivativesPolicy:
    """Validate *data* into a policy. A missing ``mode`` means spot."""
    data = {"mode": "spot", **data}
    try:
        return _POLICY_ADAPTER.validate_python(data)
    except ValidationError as exc:
        raise PolicyValidationError(str(exc)) from exc


def default_policy(derivatives: bool = False) -> SpotPolicy | DerivativesPolicy:
    return DerivativesPolicy() if derivatives else SpotPolicy()


def _deep_merge(base: dict[str, Any], update: dict[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in update.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def merge_policy(
    current: SpotPolicy | DerivativesPolicy, partial: dict[str, Any]
) -> SpotPolicy | DerivativesPolicy:
    """Return a new policy: *current* with *partial* merged over it.

    Nested parameter groups merge field by field. Switching ``mode`` to spot
    drops the derivatives parameters; switching to derivatives starts from
    their defaults unless *partial* supplies them.
    """
    merged = _deep_merge(current.model_dump(), partial)
    if merged.get("mode") == "spot":
        merged.pop("derivatives_parameters", None)
    return parse_policy(merged)
