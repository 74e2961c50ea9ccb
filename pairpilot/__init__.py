"""PairPilot: AI-assisted decision pipeline and risk-gated execution for crypto pairs."""

__version__ = "0.1.0"
