"""
Gümrükçüm Analysis Pipeline

verify credential → check configuration → validate input → resolve
entitlement → compose request → generate → normalize → gate market data by
tier → charge credit + history

Authentication always runs first. Configuration, input and entitlement
failures abort before the provider is called. Provider failures abort before
anything is written. Ledger and history failures never abort a request that
already has a result.
"""

import logging
import time
from typing import Optional

from gumrukcum.analysis.composer import build_input, compose_request, parse_body
from gumrukcum.analysis.entitlements import resolve_entitlement
from gumrukcum.analysis.ledger import record_usage
from gumrukcum.analysis.normalizer import Degraded, normalize
from gumrukcum.analysis.schemas import AnalysisResult
from gumrukcum.config import Settings
from gumrukcum.errors import ServiceNotConfigured

logger = logging.getLogger(__name__)


class AnalysisPipeline:
    """Profile/history stores and the generator may be None when the service is not configured."""

    def __init__(self, verifier, profiles, history, generator, settings: Settings):
        self.verifier = verifier
        self.profiles = profiles
        self.history = history
        self.generator = generator
        self.settings = settings

    def _require_configured(self):
        if self.generator is None:
            raise ServiceNotConfigured("OpenAI API key not configured.")
        if self.profiles is None or self.history is None:
            raise ServiceNotConfigured("Database not configured.")

    async def run(self, authorization: Optional[str], payload) -> AnalysisResult:
        start = time.time()
        identity = await self.verifier.verify(authorization)
        self._require_configured()
        analysis_input = build_input(parse_body(payload), self.settings)
        entitlement = resolve_entitlement(self.profiles, identity, self.settings)
        policy = entitlement.policy

        logger.info(
            f"Analysis for {identity.id}: tier={policy.tier.value} model={policy.model_variant} "
            f"image={analysis_input.image is not None} note_chars={len(analysis_input.note)}"
        )

        request = compose_request(analysis_input, policy, self.settings)
        raw_text = await self.generator.generate(request)

        normalized = normalize(raw_text)
        if isinstance(normalized, Degraded):
            logger.info(f"Degraded result for {identity.id} ({len(raw_text)} chars of raw text)")
        result = normalized.to_result()
        if not policy.market_data and result.market_data is not None:
            result = result.model_copy(update={"market_data": None})

        ledger = record_usage(
            self.profiles, self.history, identity, policy, analysis_input.note, result
        )
        if not ledger.ok:
            logger.warning(f"Ledger incomplete for {identity.id}: {'; '.join(ledger.errors)}")

        logger.info(f"Analysis for {identity.id} done in {time.time() - start:.1f}s")
        return result
