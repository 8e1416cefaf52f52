"""Client for the Gemini ``generateContent`` endpoint.

One call to :meth:`GenerationClient.generate` is one logical request. Transient
failures are retried here, with exponential backoff, so callers only ever see
the final text or a single :class:`GenerationError`.
"""

from __future__ import annotations

import asyncio
import base64
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

import httpx

from studysync.core.config import settings
from studysync.core.errors import GenerationError

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


class GenerationClient:
    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        base_url: Optional[str] = None,
        max_attempts: Optional[int] = None,
        initial_delay: Optional[float] = None,
        timeout: Optional[float] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        sleep: Sleep = asyncio.sleep,
    ):
        self.api_key = settings.GEMINI_API_KEY if api_key is None else api_key
        self.model = model or settings.GEMINI_MODEL
        self.base_url = (base_url or settings.GEMINI_BASE_URL).rstrip("/")
        self.max_attempts = max_attempts or settings.GENERATION_MAX_ATTEMPTS
        self.initial_delay = settings.GENERATION_INITIAL_DELAY_SECONDS if initial_delay is None else initial_delay
        self._owns_client = http_client is None
        self._http = http_client or httpx.AsyncClient(
            timeout=timeout or settings.GENERATION_TIMEOUT_SECONDS
        )
        self._sleep = sleep

    @property
    def url(self) -> str:
        return f"{self.base_url}/models/{self.model}:generateContent"

    def build_payload(
        self,
        prompt: str,
        expect_json: bool = False,
        image_payload: Union[str, bytes, None] = None,
        image_mime_type: str = "image/png",
    ) -> Dict[str, Any]:
        parts: List[Dict[str, Any]] = [{"text": prompt}]
        if image_payload is not None:
            if isinstance(image_payload, bytes):
                data = base64.b64encode(image_payload).decode("ascii")
            else:
                data = image_payload
            parts.append({"inlineData": {"mimeType": image_mime_type, "data": data}})
        return {
            "contents": [{"parts": parts}],
            "generationConfig": {"responseMimeType": "application/json"} if expect_json else {},
        }

    async def generate(
        self,
        prompt: str,
        expect_json: bool = False,
        image_payload: Union[str, bytes, None] = None,
        image_mime_type: str = "image/png",
    ) -> str:
        """Return the first text completion for ``prompt``.

        Tries up to ``max_attempts`` times. Between attempts waits
        ``initial_delay`` seconds, doubling after each failure (1s, 2s, 4s, 8s
        with the defaults). A response without any completion text is not
        retried: the model answered, it just said nothing.
        """
        if not self.api_key:
            raise GenerationError("GEMINI_API_KEY is not configured")

        payload = self.build_payload(prompt, expect_json, image_payload, image_mime_type)
        delay = self.initial_delay
        last_error: Optional[Exception] = None

        for attempt in range(1, self.max_attempts + 1):
            try:
                r = await self._http.post(self.url, params={"key": self.api_key}, json=payload)
                r.raise_for_status()
                data = r.json()
            except (httpx.HTTPError, ValueError) as e:
                last_error = e
                if attempt == self.max_attempts:
                    break
                logger.warning(
                    "Generation attempt %d/%d failed (%s); retrying in %.1fs",
                    attempt, self.max_attempts, _describe(e), delay,
                )
                await self._sleep(delay)
                delay *= 2
                continue

            text = extract_text(data)
            if not text:
                raise GenerationError("empty completion")
            logger.debug("Generation succeeded on attempt %d (%d chars)", attempt, len(text))
            return text

        logger.error("Generation failed after %d attempts: %s", self.max_attempts, _describe(last_error))
        raise GenerationError(f"generation failed after {self.max_attempts} attempts: {_describe(last_error)}") from last_error

    async def aclose(self) -> None:
        if self._owns_client:
            await self._http.aclose()


def extract_text(data: Any) -> Optional[str]:
    """Pull ``candidates[0].content.parts[0].text`` out of a response envelope."""
    try:
        text = data["candidates"][0]["content"]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError):
        return None
    if not isinstance(text, str) or not text.strip():
        return None
    return text


def _describe(e: Optional[Exception]) -> str:
    if isinstance(e, httpx.HTTPStatusError):
        return f"HTTP {e.response.status_code}"
    return str(e) or type(e).__name__
