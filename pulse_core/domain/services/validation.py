"""Parsing of JSON written by language models.

Models are asked for bare JSON but often wrap it in Markdown fences or
return something else entirely. Every failure raised here names the
provider that produced the text and carries a snippet of it, so bad
output can be traced to the provider responsible.

Usage:
    analysis = parse_analysis_output(call.text, provider_id=call.provider_id)
"""

import json
import logging
import re
from typing import Any, Optional, TypeVar

from pydantic import BaseModel, ValidationError

from pulse_core.domain.schemas.analysis import (
    AnalysisOutput,
    HallucinationReport,
    SentimentReport,
)

logger = logging.getLogger(__name__)

SNIPPET_LENGTH = 200

ModelT = TypeVar("ModelT", bound=BaseModel)

_FENCE_RE = re.compile(r"```[a-zA-Z]*[ \t]*\n?")


class AnalysisValidationError(Exception):
    """Model output could not be parsed into the expected schema."""

    def __init__(self, reason: str, provider_id: str, raw_text: str):
        self.reason = reason
        self.provider_id = provider_id
        self.snippet = snippet(raw_text)
        super().__init__(
            f"Invalid analysis output from {provider_id}: {reason} "
            f"(raw: {self.snippet!r})"
        )


def snippet(raw_text: Optional[str], length: int = SNIPPET_LENGTH) -> str:
    if not raw_text:
        return ""
    text = raw_text.strip()
    return text if len(text) <= length else text[:length] + "..."


def strip_code_fences(raw_text: str) -> str:
    """Remove Markdown code-fence markers around (or inside) the text."""
    return _FENCE_RE.sub("", raw_text).strip()


def _outermost_object(text: str) -> Optional[Any]:
    """Retry parsing on the outermost ``{...}`` span (prose around JSON)."""
    start, end = text.find("{"), text.rfind("}")
    if start == -1 or end <= start:
        return None
    try:
        return json.loads(text[start:end + 1])
    except ValueError:
        return None


def _format_validation_error(error: ValidationError) -> str:
    parts = []
    for item in error.errors():
        location = ".".join(str(p) for p in item.get("loc", ())) or "<root>"
        parts.append(f"{location}: {item.get('msg', 'invalid')}")
    return "; ".join(parts)


def parse_model_output(raw_text: Any, schema: type[ModelT], provider_id: str) -> ModelT:
    """Parse ``raw_text`` as JSON and validate it against ``schema``.

    Raises:
        AnalysisValidationError: On empty text, invalid JSON, a non-object
            document, or a schema violation.
    """
    if not isinstance(raw_text, str) or not raw_text.strip():
        raise AnalysisValidationError("empty response", provider_id, raw_text or "")

    cleaned = strip_code_fences(raw_text)

    # ValueError also covers integers past the interpreter's digit limit
    try:
        data = json.loads(cleaned)
    except ValueError as e:
        data = _outermost_object(cleaned)
        if data is None:
            logger.warning(f"Unparseable JSON from {provider_id}: {e}")
            reason = e.msg if isinstance(e, json.JSONDecodeError) else str(e)
            raise AnalysisValidationError(
                f"invalid JSON ({reason})", provider_id, raw_text
            ) from e

    if not isinstance(data, dict):
        raise AnalysisValidationError(
            f"expected a JSON object, got {type(data).__name__}",
            provider_id,
            raw_text,
        )

    try:
        return schema.model_validate(data)
    except ValidationError as e:
        reason = _format_validation_error(e)
        logger.warning(f"{schema.__name__} validation failed for {provider_id}: {reason}")
        raise AnalysisValidationError(reason, provider_id, raw_text) from e


def parse_analysis_output(raw_text: Any, provider_id: str) -> AnalysisOutput:
    """Validate a brand-analysis answer."""
    return parse_model_output(raw_text, AnalysisOutput, provider_id)


def parse_sentiment_report(raw_text: Any, provider_id: str) -> SentimentReport:
    return parse_model_output(raw_text, SentimentReport, provider_id)


def parse_hallucination_report(raw_text: Any, provider_id: str) -> HallucinationReport:
    return parse_model_output(raw_text, HallucinationReport, provider_id)
