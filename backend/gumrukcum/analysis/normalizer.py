"""
Normalizes provider text into an AnalysisResult.

Two outcomes: Structured (the JSON parsed and validated) or Degraded (it did
not, and the raw text is kept as the risk analysis). Both convert to the
same public shape, so formatting problems never fail the user's request.
"""

import json
import logging
import re
from dataclasses import dataclass
from typing import Union

from pydantic import ValidationError

from gumrukcum.analysis.schemas import AnalysisResult

logger = logging.getLogger(__name__)

UNDETERMINED_GTIP = "Belirlenemedi"
UNDETERMINED_PRODUCT = "Analiz Hatası"

_LEADING_FENCE = re.compile(r"^\s*```[\w-]*[ \t]*\n?")
_TRAILING_FENCE = re.compile(r"\n?[ \t]*```\s*$")
_GTIP_DIGITS = 12


@dataclass(frozen=True)
class Structured:
    result: AnalysisResult

    def to_result(self) -> AnalysisResult:
        return self.result


@dataclass(frozen=True)
class Degraded:
    raw_text: str

    def to_result(self) -> AnalysisResult:
        return AnalysisResult(
            gtip=UNDETERMINED_GTIP,
            product_name=UNDETERMINED_PRODUCT,
            taxes=(),
            documents=(),
            risk_analysis=self.raw_text,
            market_data=None,
        )


Normalized = Union[Structured, Degraded]


def strip_fences(text: str) -> str:
    text = _LEADING_FENCE.sub("", text, count=1)
    text = _TRAILING_FENCE.sub("", text, count=1)
    return text.strip()


def canonical_gtip(code: str) -> str:
    """Reformat a bare 12-digit code as dddd.dd.dd.dd.dd; anything else is left as is."""
    digits = re.sub(r"[\s.\-]", "", code)
    if len(digits) != _GTIP_DIGITS or not digits.isdigit():
        return code
    return f"{digits[:4]}.{digits[4:6]}.{digits[6:8]}.{digits[8:10]}.{digits[10:]}"


def normalize(raw_text: str) -> Normalized:
    try:
        payload = json.loads(strip_fences(raw_text))
        if not isinstance(payload, dict):
            raise ValueError(f"expected a JSON object, got {type(payload).__name__}")
        result = AnalysisResult.model_validate(payload)
    except (ValueError, ValidationError) as e:
        # json.JSONDecodeError is a ValueError
        logger.warning(f"Model output not parseable, returning degraded result: {e}")
        return Degraded(raw_text)

    gtip = canonical_gtip(result.gtip)
    if gtip != result.gtip:
        result = result.model_copy(update={"gtip": gtip})
    return Structured(result)


def normalize_result(raw_text: str) -> AnalysisResult:
    return normalize(raw_text).to_result()
