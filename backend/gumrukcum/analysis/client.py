"""
Generation client: one Responses API call per analysis.

No retries. A failed call surfaces immediately as a typed error; the
timeout is explicit so a stuck provider cannot hold the request forever.
"""

import logging
import time
from typing import Optional

from openai import AsyncOpenAI, APIConnectionError, APIStatusError

from gumrukcum.analysis.composer import GenerationRequest
from gumrukcum.config import Settings
from gumrukcum.errors import EmptyGeneration, ProviderError, ProviderUnavailable

logger = logging.getLogger(__name__)


class OpenAIGenerationClient:
    def __init__(self, settings: Settings, client: Optional[AsyncOpenAI] = None):
        self.client = client or AsyncOpenAI(
            api_key=settings.openai_api_key,
            timeout=settings.generation_timeout_seconds,
            max_retries=0,
        )

    async def generate(self, request: GenerationRequest) -> str:
        start = time.time()
        logger.info(f"[OpenAI] {request.model} tools={[t['type'] for t in request.tools]}")
        try:
            response = await self.client.responses.create(**request.to_kwargs())
        except APIConnectionError as e:
            # Includes APITimeoutError
            logger.warning(f"[OpenAI] Unreachable: {e}")
            raise ProviderUnavailable("AI service is unreachable. Please try again.")
        except APIStatusError as e:
            body = e.response.text if e.response is not None else str(e)
            logger.warning(f"[OpenAI] HTTP {e.status_code} from {request.model}: {body[:300]}")
            raise ProviderError(f"AI error ({request.model}, HTTP {e.status_code}).", detail=body)

        if response.usage:
            u = response.usage
            logger.info(f"[OpenAI] Tokens: {u.input_tokens}+{u.output_tokens}={u.total_tokens}")

        text = response.output_text
        if not text or not text.strip():
            logger.warning(f"[OpenAI] Empty output (status={getattr(response, 'status', None)})")
            raise EmptyGeneration("AI could not produce an answer. Try rephrasing.")

        logger.info(f"[OpenAI] Done in {time.time() - start:.1f}s ({len(text)} chars)")
        return text
