"""Monitoring API routes.

Provides endpoints for:
- POST /monitoring/check - Run a prompt on one or more engines (no persistence)
- POST /sentiment - Sentiment and/or hallucination analysis of a text
"""

import asyncio
import logging

from fastapi import APIRouter, HTTPException, status

from pulse_core.api.deps import MonitoringServiceDep, RateLimited
from pulse_core.api.schemas.monitoring import (
    EngineCheckResponse,
    MonitoringCheckRequest,
    MonitoringCheckResponse,
    TextAnalysisRequest,
    TextAnalysisResponse,
)
from pulse_core.domain.schemas.monitoring import Brand, MonitoringEngine, Prompt
from pulse_core.domain.services.check_runner import (
    ERROR_INVALID_OUTPUT,
    ERROR_PROVIDERS_FAILED,
    ERROR_UNEXPECTED,
    select_engines,
)
from pulse_core.domain.services.monitoring import MonitoringService, summarize_health
from pulse_core.domain.services.router import AllProvidersFailedError
from pulse_core.domain.services.validation import AnalysisValidationError

logger = logging.getLogger(__name__)

router = APIRouter(tags=["monitoring"])


async def _check_engine(
    service: MonitoringService,
    prompt: Prompt,
    brand: Brand,
    engine: MonitoringEngine,
) -> EngineCheckResponse:
    try:
        result = await service.run_check(prompt, brand, engine)
    except AllProvidersFailedError as e:
        return EngineCheckResponse(engine=engine, error=str(e), error_kind=ERROR_PROVIDERS_FAILED)
    except AnalysisValidationError as e:
        return EngineCheckResponse(engine=engine, error=str(e), error_kind=ERROR_INVALID_OUTPUT)
    except Exception as e:
        logger.exception(f"Unexpected failure checking {engine.value} for brand {brand.id}")
        return EngineCheckResponse(engine=engine, error=str(e) or type(e).__name__, error_kind=ERROR_UNEXPECTED)
    return EngineCheckResponse(engine=engine, result=result)


@router.post("/monitoring/check", response_model=MonitoringCheckResponse)
async def run_monitoring_check(
    request: MonitoringCheckRequest,
    service: MonitoringServiceDep,
    _rate_limit: RateLimited,
) -> MonitoringCheckResponse:
    """Run a prompt on the requested engines concurrently.

    A failing engine is reported in its entry; the others still run.
    """
    engines = select_engines(request.engines if request.engines is not None else request.prompt.engines)
    if not engines:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="At least one engine is required",
        )

    entries = await asyncio.gather(
        *(_check_engine(service, request.prompt, request.brand, engine) for engine in engines)
    )
    results = [entry.result for entry in entries if entry.result is not None]

    logger.info(f"Ad-hoc check for brand {request.brand.id}: {len(results)}/{len(engines)} engines ok")

    return MonitoringCheckResponse(
        engines_run=len(engines),
        results=list(entries),
        health_score=summarize_health(request.brand.id, results),
    )


@router.post("/sentiment", response_model=TextAnalysisResponse)
async def analyze_text(
    request: TextAnalysisRequest,
    service: MonitoringServiceDep,
    _rate_limit: RateLimited,
) -> TextAnalysisResponse:
    """Sentiment analysis and/or hallucination detection on a text."""
    response = TextAnalysisResponse()

    async def sentiment() -> None:
        response.sentiment = await service.analyze_sentiment(request.text, request.brand_name)

    async def hallucination() -> None:
        response.hallucination = await service.detect_hallucinations(
            request.text, request.brand_name, request.known_facts
        )

    tasks = []
    if request.mode != "hallucination":
        tasks.append(sentiment())
    if request.mode != "sentiment":
        tasks.append(hallucination())

    # Both calls run to completion before the first failure is reported
    outcomes = await asyncio.gather(*tasks, return_exceptions=True)
    errors = [outcome for outcome in outcomes if isinstance(outcome, BaseException)]
    if errors:
        first = errors[0]
        if isinstance(first, (AllProvidersFailedError, AnalysisValidationError)):
            logger.error(f"Text analysis failed: {first}")
            raise HTTPException(
                status_code=status.HTTP_502_BAD_GATEWAY,
                detail=str(first),
            ) from first
        raise first

    return response
