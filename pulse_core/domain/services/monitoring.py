"""Monitoring pipeline: simulate, analyze, validate.

``MonitoringService.run_check`` produces one result payload for a
(prompt, brand, engine) triple. The caller owns persistence; nothing here
writes anywhere.

Also home to the standalone text analyzers (sentiment, hallucinations)
and the brand health-score rollup.
"""

import logging
import math
from datetime import date, datetime, timezone
from typing import Optional, Sequence, Union

from pulse_core.config import Settings
from pulse_core.domain.schemas.analysis import (
    AnalysisOutput,
    HallucinationReport,
    SentimentReport,
    clamp,
)
from pulse_core.domain.schemas.monitoring import (
    Brand,
    BrandHealthScore,
    MonitoringEngine,
    MonitoringResult,
    Prompt,
)
from pulse_core.domain.services.router import ProviderRouter
from pulse_core.domain.services.simulation import simulate_engine_response
from pulse_core.domain.services.validation import (
    parse_analysis_output,
    parse_hallucination_report,
    parse_sentiment_report,
)

logger = logging.getLogger(__name__)

ELLIPSIS = "..."

# Standalone analyzers embed at most this much of the submitted text
ANALYZER_TEXT_MAX_CHARS = 4000


# =============================================================================
# PROMPT BUILDERS
# =============================================================================


def truncate_text(text: str, max_chars: int) -> str:
    """Cut ``text`` to ``max_chars`` characters plus an ellipsis marker."""
    if len(text) <= max_chars:
        return text
    return text[:max_chars] + ELLIPSIS


def build_analysis_prompt(
    brand: Brand,
    prompt_text: str,
    response_text: str,
    max_response_chars: int = 3000,
) -> str:
    """Prompt asking a model to extract brand signals as JSON."""
    aliases = ", ".join(brand.aliases) or "none"
    competitors = ", ".join(brand.competitors) or "none"
    response_excerpt = response_text[:max_response_chars]

    return f"""You are an AI brand monitoring analyst. Analyze this AI-generated response for mentions and sentiment about the brand "{brand.name}".

BRAND INFO:
- Primary name: {brand.name}
- Aliases/variants: {aliases}
- Domain: {brand.domain or "unknown"}
- Known competitors: {competitors}

ORIGINAL PROMPT/QUERY: "{prompt_text}"

AI RESPONSE TO ANALYZE:
\"\"\"
{response_excerpt}
\"\"\"

Respond ONLY with a valid JSON object (no markdown):
{{
  "brand_mentioned": <boolean>,
  "mention_position": <1-based position of first mention, or null if not mentioned>,
  "mention_count": <number of times brand is mentioned>,
  "mention_type": <"direct" | "indirect" | "none">,
  "visibility_score": <0-100, how prominently featured>,
  "sentiment": <"positive" | "negative" | "neutral">,
  "sentiment_score": <-1.0 to 1.0>,
  "sentiment_reasoning": "<why this sentiment>",
  "cited_urls": ["<any URLs mentioned>"],
  "competitor_mentions": [
    {{"name": "<competitor name>", "position": <1-based>, "count": <mentions>}}
  ],
  "has_hallucination": <boolean>,
  "hallucination_flags": [
    {{
      "text": "<the potentially false claim>",
      "severity": <"low"|"medium"|"high">,
      "type": <"factual_error"|"attribution_error"|"fabrication"|"date_error">
    }}
  ]
}}"""


def build_sentiment_prompt(text: str, brand_name: str) -> str:
    excerpt = text[:ANALYZER_TEXT_MAX_CHARS]
    return f"""Analyze the sentiment of this text toward the brand "{brand_name}".

TEXT:
\"\"\"
{excerpt}
\"\"\"

Respond ONLY with JSON:
{{
  "sentiment": <"positive"|"negative"|"neutral">,
  "score": <-1.0 to 1.0>,
  "confidence": <0-100>,
  "reasoning": "<brief explanation>",
  "aspects": [
    {{"aspect": "<what aspect>", "sentiment": <"positive"|"negative"|"neutral">, "explanation": "<why>"}}
  ]
}}"""


def build_hallucination_prompt(text: str, brand_name: str, known_facts: Sequence[str]) -> str:
    if known_facts:
        facts = "\n".join(f"- {fact}" for fact in known_facts)
        facts_block = f"Known facts about {brand_name}:\n{facts}"
    else:
        facts_block = "No specific facts provided. Flag any claims that seem suspicious or unverifiable."

    excerpt = text[:ANALYZER_TEXT_MAX_CHARS]
    return f"""You are a fact-checking AI. Analyze this AI-generated response for potential hallucinations or factual errors about "{brand_name}".

{facts_block}

AI RESPONSE:
\"\"\"
{excerpt}
\"\"\"

Respond ONLY with JSON:
{{
  "has_hallucination": <boolean>,
  "confidence": <0-100, how confident you are>,
  "flags": [
    {{
      "text": "<the exact claim that may be false>",
      "severity": <"low"|"medium"|"high">,
      "type": <"factual_error"|"attribution_error"|"fabrication"|"date_error">
    }}
  ],
  "summary": "<brief overall assessment>"
}}"""


# =============================================================================
# HEALTH SCORE
# =============================================================================


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def calculate_health_score(
    visibility_score: float,
    sentiment_score: float,
    hallucination_rate: float,
) -> int:
    """Weighted brand health in [0, 100].

    50% visibility, 30% sentiment mapped from [-1, 1] onto [0, 100] and 20%
    of ``100 - hallucination_rate * 30``. Rounded half-up, then clamped.

    >>> calculate_health_score(80, 0.5, 0)
    83
    >>> calculate_health_score(0, -1, 1)
    14
    """
    sentiment_normalized = (sentiment_score + 1) / 2 * 100
    hallucination_component = 100 - hallucination_rate * 30
    raw = visibility_score * 0.5 + sentiment_normalized * 0.3 + hallucination_component * 0.2
    return int(clamp(_round_half_up(raw), 0, 100))


def summarize_health(
    brand_id: str,
    results: Sequence[MonitoringResult],
    on_date: Optional[date] = None,
) -> Optional[BrandHealthScore]:
    """Roll a batch of results up into one daily health score.

    Visibility and hallucination rate average over every result; sentiment
    averages over the results that mention the brand. Returns ``None`` for
    an empty batch.
    """
    if not results:
        return None

    mentioned = [r for r in results if r.brand_mentioned]
    total = len(results)

    avg_visibility = sum(r.visibility_score for r in results) / total
    avg_sentiment = (
        sum(r.sentiment_score or 0.0 for r in mentioned) / len(mentioned) if mentioned else 0.0
    )
    hallucination_rate = sum(1 for r in results if r.has_hallucination) / total

    return BrandHealthScore(
        brand_id=brand_id,
        date=on_date or datetime.now(timezone.utc).date(),
        visibility_score=avg_visibility,
        sentiment_score=avg_sentiment,
        hallucination_rate=hallucination_rate,
        mention_count=len(mentioned),
        health_score=calculate_health_score(avg_visibility, avg_sentiment, hallucination_rate),
    )


# =============================================================================
# SERVICE
# =============================================================================


class MonitoringService:
    """Drives simulate -> analyze -> validate for one engine at a time."""

    def __init__(self, router: ProviderRouter, settings: Settings):
        self.router = router
        self.settings = settings

    async def run_check(
        self,
        prompt: Prompt,
        brand: Brand,
        engine: Union[MonitoringEngine, str],
        user_id: Optional[str] = None,
    ) -> MonitoringResult:
        """Run one prompt on one engine and build the result payload.

        Raises:
            AllProvidersFailedError: If the simulate or analyze chain failed.
            AnalysisValidationError: If the analysis output was unusable.
        """
        engine = MonitoringEngine(engine)

        simulation = await simulate_engine_response(self.router, prompt.text, engine)
        response_text = simulation.text

        analysis_prompt = build_analysis_prompt(
            brand,
            prompt.text,
            response_text,
            max_response_chars=self.settings.analysis_response_max_chars,
        )
        call = await self.router.analyze(analysis_prompt)
        analysis = parse_analysis_output(call.text, provider_id=call.provider_id)

        # The schema clamps too; keep the stored range independent of it
        analysis = analysis.model_copy(
            update={
                "visibility_score": clamp(analysis.visibility_score, 0.0, 100.0),
                "sentiment_score": clamp(analysis.sentiment_score, -1.0, 1.0),
            }
        )

        logger.info(
            f"Check for brand {brand.id} on {engine.value}: "
            f"mentioned={analysis.brand_mentioned}, visibility={analysis.visibility_score:g} "
            f"(simulated by {simulation.provider_id}, analyzed by {call.provider_id})"
        )

        return MonitoringResult.from_analysis(
            prompt=prompt,
            brand=brand,
            engine=engine,
            response_text=truncate_text(response_text, self.settings.response_text_max_chars),
            analysis=analysis,
            user_id=user_id,
        )

    async def analyze_sentiment(self, text: str, brand_name: str) -> SentimentReport:
        """Sentiment of an arbitrary text toward a brand.

        Raises:
            AllProvidersFailedError: If the analyze chain failed.
            AnalysisValidationError: If the answer was unusable.
        """
        call = await self.router.analyze(build_sentiment_prompt(text, brand_name))
        return parse_sentiment_report(call.text, provider_id=call.provider_id)

    async def detect_hallucinations(
        self,
        text: str,
        brand_name: str,
        known_facts: Sequence[str] = (),
    ) -> HallucinationReport:
        """Fact-check a text about a brand against optional known facts."""
        call = await self.router.analyze(build_hallucination_prompt(text, brand_name, known_facts))
        return parse_hallucination_report(call.text, provider_id=call.provider_id)
