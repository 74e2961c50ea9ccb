"""Application configuration loaded from environment variables."""

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings


class AppConfig(BaseSettings):
    """Application configuration loaded from .env file and environment variables."""

    # Inference credentials (empty means every remote call fails as Unauthorized)
    hf_api_token: str = Field(default="", description="Hugging Face inference API token")
    deepseek_api_key: str = Field(
        default="",
        description="Chat-completion API key; falls back to hf_api_token when empty",
    )

    # Inference endpoints
    hf_inference_url: str = Field(
        default="https://api-inference.huggingface.co/models",
        description="Base URL for model inference endpoints",
    )
    chat_completion_url: str = Field(
        default="https://api.deepseek.com/v1/chat/completions",
        description="OpenAI-compatible chat completion endpoint for decisions",
    )
    chat_completion_model: str = Field(default="deepseek-chat")
    inference_timeout_seconds: float = Field(default=15.0, description="Per-call timeout")
    decision_timeout_seconds: float = Field(
        default=20.0, description="Per-call timeout for decision synthesis"
    )

    # Model cascades (comma-separated, tried in order)
    table_models: str = Field(
        default=(
            "google/tapas-base-finetuned-wtq,"
            "google/tapas-large-finetuned-wtq,"
            "google/tapas-base"
        ),
        description="Table question-answering models in cascade order",
    )
    sentiment_models: str = Field(
        default="distilbert/distilbert-base-uncased-finetuned-sst-2-english",
    )
    decision_models: str = Field(default="deepseek-ai/deepseek-coder-33b-instruct")
    summary_models: str = Field(default="facebook/bart-large-cnn")

    # Exchange
    binance_api_key: str = Field(default="", description="Binance API key")
    binance_api_secret: str = Field(default="", description="Binance API secret")
    binance_testnet: bool = Field(default=True, description="Use Binance testnet endpoints")
    exchange_timeout_seconds: float = Field(default=10.0)
    recv_window_ms: int = Field(default=5000, description="Signed request validity window")
    quote_asset: str = Field(default="USDT", description="Asset used for sizing and drawdown")

    # Risk score weights
    risk_base: float = Field(default=0.5)
    risk_rsi_step: float = Field(default=0.1)
    risk_macd_step: float = Field(default=0.05)
    risk_volume_threshold: float = Field(default=1_000_000.0)
    risk_volume_step: float = Field(default=0.05)
    risk_sentiment_weight: float = Field(default=0.2)

    # Decision fallback thresholds
    rsi_overbought: float = Field(default=70.0)
    rsi_oversold: float = Field(default=30.0)
    risk_override_threshold: float = Field(
        default=0.7, description="Risk above which the decision is always HOLD"
    )
    macd_buy_max_risk: float = Field(default=0.5)
    volatile_hold_min_risk: float = Field(default=0.5)
    uptrend_buy_max_risk: float = Field(default=0.6)

    # Performance tracker
    tracker_capacity: int = Field(default=1000, description="Records kept per collection")

    # Logging
    log_level: str = Field(default="INFO", description="Log level (DEBUG, INFO, WARNING, ERROR)")
    log_file: str = Field(default="log/pairpilot.log", description="Path to the rotating log file")

    # HTTP API
    api_host: str = Field(default="127.0.0.1")
    api_port: int = Field(default=8000)

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    @model_validator(mode="after")
    def _validate_thresholds(self) -> "AppConfig":
        if not 0 <= self.rsi_oversold < self.rsi_overbought <= 100:
            raise ValueError(
                f"RSI bands must satisfy 0 <= oversold < overbought <= 100, "
                f"got {self.rsi_oversold} / {self.rsi_overbought}"
            )
        for name in (
            "risk_base",
            "risk_override_threshold",
            "macd_buy_max_risk",
            "volatile_hold_min_risk",
            "uptrend_buy_max_risk",
        ):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"{name} must be within [0, 1], got {value}")
        if self.tracker_capacity < 1:
            raise ValueError("tracker_capacity must be positive")
        return self

    @staticmethod
    def _split(value: str) -> list[str]:
        return [item.strip() for item in value.split(",") if item.strip()]

    @property
    def table_model_list(self) -> list[str]:
        return self._split(self.table_models)

    @property
    def sentiment_model_list(self) -> list[str]:
        return self._split(self.sentiment_models)

    @property
    def decision_model_list(self) -> list[str]:
        return self._split(self.decision_models)

    @property
    def summary_model_list(self) -> list[str]:
        return self._split(self.summary_models)
