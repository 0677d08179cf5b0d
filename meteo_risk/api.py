"""HTTP API for the weather risk service."""

import asyncio

from fastapi import APIRouter, FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from .config import settings
from .domain import PredictionQuery, PredictionResult
from .errors import InvalidRequestError, MeteoRiskError
from .extraction import RawExtraction, extract_intent_strict
from .llm_client import OpenRouterClient
from .pipeline import PredictionPipeline
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="meteo_risk/api")

router = APIRouter()
PIPELINE = PredictionPipeline(settings)
LLM_CLIENT = OpenRouterClient(settings)


class PredictResponse(BaseModel):
    """Prediction as rendered to clients."""
    rainRisk: int
    wind: str
    temp: float | None = None
    source: str
    date: str

    @classmethod
    def from_result(cls, result: PredictionResult) -> "PredictResponse":
        return cls(
            rainRisk=result.rain_risk_pct,
            wind=result.wind_label.value,
            temp=result.temp_c,
            source=result.source.value,
            date=result.date,
        )


class ParseRequest(BaseModel):
    """Incoming parse-only payload."""
    query: str | None = None


class ExtractedFields(BaseModel):
    """Extraction fields keyed the way the model is asked to answer."""
    model_config = ConfigDict(populate_by_name=True)

    location: str | None = None
    date_iso: str | None = Field(default=None, alias="dateISO")
    activity: str | None = None


class ParseResponse(BaseModel):
    """Raw model content, the projected fields, and their normalized form."""
    model_config = ConfigDict(protected_namespaces=())

    model_content: str
    model_parsed: ExtractedFields
    normalized: ExtractedFields


class HealthResponse(BaseModel):
    status: str
    historical_source: str
    strict: bool


def _fields(raw: RawExtraction | BaseModel) -> ExtractedFields:
    return ExtractedFields(**raw.model_dump())


@router.post("/predict", response_model=PredictResponse)
async def predict(request: PredictionQuery) -> PredictResponse:
    """Resolve the query and return the blended rain/wind/temperature outlook."""
    logger.info("Predict request", extra={"stage": "request", "request": request.model_dump(exclude_none=True)})
    try:
        result = await PIPELINE.predict(request)
    except MeteoRiskError:
        raise
    except Exception as exc:
        logger.exception("Prediction failed", extra={"stage": "request"})
        raise MeteoRiskError(str(exc)) from exc
    return PredictResponse.from_result(result)


@router.post("/parse", response_model=ParseResponse, response_model_by_alias=True)
async def parse(request: ParseRequest) -> ParseResponse:
    """Model-only extraction, without fallbacks, for diagnosing the parser."""
    query = (request.query or "").strip()
    if not query:
        raise InvalidRequestError("Missing query")
    report = await asyncio.to_thread(extract_intent_strict, query, LLM_CLIENT)
    return ParseResponse(
        model_content=report.model_content,
        model_parsed=_fields(report.model_parsed),
        normalized=_fields(report.normalized),
    )


@router.get("/health", response_model=HealthResponse)
def health() -> HealthResponse:
    """Liveness probe; makes no upstream calls."""
    return HealthResponse(
        status="ok",
        historical_source=PIPELINE.historical_source.name,
        strict=PIPELINE.settings.parsing_strict,
    )


async def handle_meteo_risk_error(request: Request, exc: MeteoRiskError) -> JSONResponse:
    log = logger.warning if exc.status_code < 500 else logger.error
    log("%s %s -> %s: %s", request.method, request.url.path, exc.status_code, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    first = errors[0] if errors else {}
    where = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    message = f"Invalid request: {where}: {first.get('msg')}" if where else f"Invalid request: {first.get('msg')}"
    logger.warning("%s %s -> 400: %s", request.method, request.url.path, message)
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"error": message})


async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content={"error": str(exc)})


def install_exception_handlers(app: FastAPI) -> None:
    """Render every failure as a JSON `{"error": ...}` body."""
    app.add_exception_handler(MeteoRiskError, handle_meteo_risk_error)
    app.add_exception_handler(RequestValidationError, handle_validation_error)
    app.add_exception_handler(Exception, handle_unexpected_error)
