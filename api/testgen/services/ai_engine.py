"""
AI Engine Service
Handles all interactions with Google Gemini API for test generation.
"""
import asyncio
import logging
from typing import Optional

from google import genai
from google.genai import types

from testgen.config import GENERATION_TIMEOUT_SECONDS, MODEL_NAME, get_api_key
from testgen.errors import GenerationError, GenerationFailure, GenerationTimeout
from testgen.services.race import race_timeout

logger = logging.getLogger(__name__)

SAFETY_SETTINGS = [
    types.SafetySetting(
        category=category,
        threshold=types.HarmBlockThreshold.BLOCK_MEDIUM_AND_ABOVE,
    )
    for category in (
        types.HarmCategory.HARM_CATEGORY_HARASSMENT,
        types.HarmCategory.HARM_CATEGORY_HATE_SPEECH,
        types.HarmCategory.HARM_CATEGORY_SEXUALLY_EXPLICIT,
        types.HarmCategory.HARM_CATEGORY_DANGEROUS_CONTENT,
    )
]


def get_client(api_key: Optional[str] = None) -> genai.Client:
    """
    Creates and returns a configured Gemini API client.

    Returns:
        genai.Client: Authenticated Gemini client.

    Raises:
        ValueError: If API key is not configured.
    """
    resolved_key = api_key.strip() if api_key else ""
    if not resolved_key:
        resolved_key = get_api_key()
    return genai.Client(api_key=resolved_key)


async def _call_model(client: genai.Client, prompt: str) -> str:
    response = await client.aio.models.generate_content(
        model=MODEL_NAME,
        contents=prompt,
        config=types.GenerateContentConfig(safety_settings=SAFETY_SETTINGS),
    )
    return response.text or ""


async def generate(
    prompt: str,
    timeout: float = GENERATION_TIMEOUT_SECONDS,
    client: Optional[genai.Client] = None,
) -> str:
    """
    Generates raw test text from a prompt under a hard wall-clock budget.

    The model call races a timer. When the timer wins the call is left
    running in the background and its eventual result is discarded; it is
    never retried here, so a slow request is billed at most once.

    Args:
        prompt: Compiled generation prompt.
        timeout: Budget in seconds.
        client: Authenticated Gemini client (resolved from env when omitted).

    Returns:
        Raw model output text.

    Raises:
        GenerationTimeout: If the timer settles first.
        GenerationError: EMPTY_OUTPUT for blank output, PROVIDER_FAILURE for SDK errors.
        ValueError: If no API key is configured.
    """
    client = client or get_client()
    logger.info("[Generator] Calling %s (prompt %s chars, timeout %.0fs)", MODEL_NAME, len(prompt), timeout)

    try:
        text = await race_timeout(_call_model(client, prompt), timeout)
    except asyncio.TimeoutError:
        logger.warning("[Generator] Timed out after %.0fs; abandoning in-flight call", timeout)
        raise GenerationTimeout(timeout) from None
    except Exception as e:
        logger.error("[Generator] Provider error: %s", e)
        raise GenerationError(GenerationFailure.PROVIDER_FAILURE, f"Failed to generate test: {e}") from e

    if not text.strip():
        raise GenerationError(GenerationFailure.EMPTY_OUTPUT, "AI generated empty response")

    logger.info("[Generator] Received %s characters", len(text))
    return text
