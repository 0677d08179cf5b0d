import os

import uvicorn

from meteo_risk.config import settings
from utils.logging_utils import get_tagged_logger, mask_secret, setup_logging

logger = get_tagged_logger(__name__, tag="server")


def log_startup_settings() -> None:
    """
    Report which extraction and history setup the server starts with.
    The language-model key is masked; without it every query falls back to
    the heuristic parser.
    """
    logger.info(
        "Starting with model=%s key=%s strict=%s historical_source=%s",
        settings.openrouter_model,
        mask_secret(settings.openrouter_api_key),
        settings.parsing_strict,
        settings.historical_source,
    )
    if not settings.openrouter_api_key:
        logger.warning("OPENROUTER_API_KEY is not set; /v1/parse will answer 500 and /v1/predict uses the heuristic parser only.")


if __name__ == "__main__":
    setup_logging(job_name=os.getenv("JOB_NAME", "meteo-risk"))
    log_startup_settings()

    uvicorn.run(
        "meteo_risk.main:app",
        host="0.0.0.0",
        port=int(os.getenv("PORT", 8000)),
        reload=False,
    )
