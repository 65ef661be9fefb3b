"""
Thin async wrapper around the OpenAI chat completions API.

The pipeline only needs one request/response call: a system instruction, a
prompt and optionally inline images in, free-form text out.
"""
import logging
from typing import List, Optional, Tuple

from openai import AsyncOpenAI

from app.core.config import settings
from app.services.parsers.errors import InferenceServiceError

logger = logging.getLogger(__name__)

# (media type, base64 payload)
InlineImage = Tuple[str, str]


class InferenceClient:
    """Single request/response access to the inference service"""

    def __init__(self, api_key: Optional[str] = None, model: Optional[str] = None,
                 base_url: Optional[str] = None, timeout: Optional[float] = None):
        self.api_key = api_key if api_key is not None else settings.OPENAI_API_KEY
        self.model = model or settings.LLM_MODEL
        self.base_url = base_url if base_url is not None else settings.OPENAI_BASE_URL
        self.timeout = timeout or settings.LLM_TIMEOUT
        self._client: Optional[AsyncOpenAI] = None

    def _get_client(self) -> AsyncOpenAI:
        if self._client is None:
            if not self.api_key:
                raise InferenceServiceError("OPENAI_API_KEY not configured")
            self._client = AsyncOpenAI(
                api_key=self.api_key,
                base_url=self.base_url or None,
                timeout=self.timeout,
            )
        return self._client

    async def complete(self, system: Optional[str], prompt: str,
                       images: Optional[List[InlineImage]] = None,
                       max_tokens: Optional[int] = None) -> str:
        """Send one request and return the text of the reply.

        Raises:
            InferenceServiceError: if the client is not configured, the call
                fails, or the reply carries no text.
        """
        client = self._get_client()

        messages = []
        if system:
            messages.append({"role": "system", "content": system})

        if images:
            content = [
                {"type": "image_url", "image_url": {"url": f"data:{media_type};base64,{data}"}}
                for media_type, data in images
            ]
            content.append({"type": "text", "text": prompt})
            messages.append({"role": "user", "content": content})
        else:
            messages.append({"role": "user", "content": prompt})

        try:
            response = await client.chat.completions.create(
                model=self.model,
                messages=messages,
                max_tokens=max_tokens or settings.LLM_MAX_TOKENS,
                temperature=0.1,
            )
        except Exception as e:
            logger.error(f"Inference call failed: {e}")
            raise InferenceServiceError(f"Inference call failed: {e}") from e

        if not response.choices or not response.choices[0].message.content:
            raise InferenceServiceError("Inference reply contained no text")

        return response.choices[0].message.content

    async def close(self) -> None:
        """Release the underlying HTTP connection pool"""
        if self._client is not None:
            await self._client.close()
            self._client = None
