"""PairPilot application entry point."""

import logging

import uvicorn
from fastapi import FastAPI

from pairpilot.api.app import create_api_app
from pairpilot.config import AppConfig
from pairpilot.execution.session import TradingSession
from pairpilot.inference.client import InferenceClient
from pairpilot.models import Capability
from pairpilot.pipeline import build_pipeline
from pairpilot.tracking.performance_tracker import PerformanceTracker
from pairpilot.utils.logger import configure_logging

logger = logging.getLogger(__name__)


def create_app(config: AppConfig) -> FastAPI:
    """Wire all components together and return the API application."""
    tracker = PerformanceTracker(config.tracker_capacity)
    client = InferenceClient(config, tracker)
    pipeline = build_pipeline(client, config)
    session = TradingSession.from_config(config)
    model_lists = {
        Capability.TAPAS: config.table_model_list,
        Capability.DISTILBERT: config.sentiment_model_list,
        Capability.DECISION: config.decision_model_list,
        Capability.BART: config.summary_model_list,
    }
    return create_api_app(
        session, pipeline, tracker, inference_client=client, model_lists=model_lists
    )


def main() -> None:
    config = AppConfig()
    configure_logging(level=config.log_level, log_file=config.log_file)
    if not config.hf_api_token and not config.deepseek_api_key:
        logger.warning("No inference credentials configured; every stage will use local heuristics")
    if config.binance_testnet:
        logger.info("Exchange clients use testnet endpoints")

    app = create_app(config)
    logger.info("Starting PairPilot API on %s:%d", config.api_host, config.api_port)
    uvicorn.run(app, host=config.api_host, port=config.api_port, log_config=None)


if __name__ == "__main__":
    main()
