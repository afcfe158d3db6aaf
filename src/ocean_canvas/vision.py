"""Remote sketch recognition — send a canvas snapshot, get text guesses back.

The vision model is treated as a noisy oracle: it receives one encoded image
plus a fixed instruction and returns free text, expected to be a short
comma-separated list of guesses.

Backends:
- Gemini generateContent REST API (aiohttp)
- Mock client with canned answers for offline play and tests
"""

from __future__ import annotations

import asyncio
import base64
import itertools
import logging
import os
from typing import Optional, Sequence

import aiohttp

logger = logging.getLogger("ocean_canvas.vision")

GUESS_PROMPT = (
    "Look at this sketch. Describe what you see instantly. "
    'If it\'s just random lines, say "Line" or "Scribble". '
    'If it\'s a shape, say "Circle" or "Square". '
    "If it looks like an object, guess the object. "
    "Return ONLY a comma-separated list of 3 short guesses. "
    'e.g. "Line, Curve, House".'
)

# Placeholder guess shown when a request fails
ERROR_GUESS = "API Error..."

GEMINI_API_URL = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"
DEFAULT_MODEL = "gemini-1.5-flash"


class RecognitionError(Exception):
    """The classifier request failed or returned an unusable response."""


def parse_guesses(text: str) -> list[str]:
    """Split a comma-separated response into ranked guesses."""
    return [g.strip() for g in text.split(",") if g.strip()]


def matches_target(text: str, target: str) -> bool:
    """Case-insensitive substring match of the target word in the full response."""
    if not target:
        return False
    return target.casefold() in text.casefold()


class VisionClient:
    """Base class for sketch classifiers."""

    async def describe(self, image: bytes, prompt: str = GUESS_PROMPT) -> str:
        """Return the model's free-text answer for an encoded image.

        Raises:
            RecognitionError: On any request or response failure.
        """
        raise NotImplementedError

    async def close(self):
        """Release network resources."""

    @property
    def name(self) -> str:
        return type(self).__name__


class GeminiVisionClient(VisionClient):
    """Gemini generateContent client using inline image data."""

    def __init__(
        self,
        api_key: str,
        model: str = DEFAULT_MODEL,
        timeout: float = 10.0,
        mime_type: str = "image/jpeg",
        session: Optional[aiohttp.ClientSession] = None,
        api_url: str = GEMINI_API_URL,
    ):
        if not api_key:
            raise ValueError("api_key is required for GeminiVisionClient")
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self.mime_type = mime_type
        self.api_url = api_url
        self._session = session
        self._owns_session = session is None

    def _build_payload(self, image: bytes, prompt: str) -> dict:
        return {
            "contents": [{
                "parts": [
                    {"text": prompt},
                    {
                        "inline_data": {
                            "mime_type": self.mime_type,
                            "data": base64.b64encode(image).decode("ascii"),
                        }
                    },
                ]
            }]
        }

    async def describe(self, image: bytes, prompt: str = GUESS_PROMPT) -> str:
        if self._session is None:
            self._session = aiohttp.ClientSession()

        url = self.api_url.format(model=self.model)
        headers = {"x-goog-api-key": self.api_key, "Content-Type": "application/json"}

        try:
            async with self._session.post(
                url,
                json=self._build_payload(image, prompt),
                headers=headers,
                timeout=aiohttp.ClientTimeout(total=self.timeout),
            ) as resp:
                if resp.status != 200:
                    body = await resp.text()
                    raise RecognitionError(f"HTTP {resp.status}: {body[:200]}")
                data = await resp.json()
        # ServerTimeoutError is also a ClientError, so timeouts go first
        except asyncio.TimeoutError as e:
            raise RecognitionError(f"Request timed out after {self.timeout}s") from e
        except aiohttp.ClientError as e:
            raise RecognitionError(f"Request failed: {e}") from e

        text = extract_text(data)
        logger.debug("Gemini response: %s", text)
        return text

    async def close(self):
        if self._session is not None and self._owns_session:
            await self._session.close()
        self._session = None


def extract_text(data: dict) -> str:
    """Pull the answer text out of a generateContent response body."""
    try:
        parts = data["candidates"][0]["content"]["parts"]
    except (KeyError, IndexError, TypeError) as e:
        reason = ""
        if isinstance(data, dict):
            reason = data.get("promptFeedback", {}).get("blockReason", "")
        raise RecognitionError(f"Malformed response{': ' + reason if reason else ''}") from e

    text = "".join(p.get("text", "") for p in parts if isinstance(p, dict)).strip()
    if not text:
        raise RecognitionError("Empty response")
    return text


class MockVisionClient(VisionClient):
    """Cycles through canned answers. No network access."""

    DEFAULT_RESPONSES = (
        "Line, Scribble, Curve",
        "Circle, Sun, Ball",
        "House, Box, Square",
    )

    def __init__(self, responses: Optional[Sequence[str]] = None, delay: float = 0.0):
        self.responses = list(responses or self.DEFAULT_RESPONSES)
        self.delay = delay
        self.calls = 0
        self._cycle = itertools.cycle(self.responses)

    async def describe(self, image: bytes, prompt: str = GUESS_PROMPT) -> str:
        self.calls += 1
        if self.delay > 0:
            await asyncio.sleep(self.delay)
        return next(self._cycle)


def create_client(
    api_key: Optional[str] = None,
    model: str = DEFAULT_MODEL,
    timeout: float = 10.0,
    use_mock: bool = False,
    api_key_env: str = "GEMINI_API_KEY",
    mime_type: str = "image/jpeg",
) -> VisionClient:
    """Factory for the configured vision client.

    Falls back to MockVisionClient when no API key is available.
    """
    if use_mock:
        logger.info("Using mock vision client")
        return MockVisionClient()

    key = api_key or os.environ.get(api_key_env, "")
    if not key:
        logger.warning(
            "No API key found (set %s). Using mock vision client.", api_key_env
        )
        return MockVisionClient()

    logger.info("Using Gemini vision client (model=%s)", model)
    return GeminiVisionClient(api_key=key, model=model, timeout=timeout, mime_type=mime_type)
