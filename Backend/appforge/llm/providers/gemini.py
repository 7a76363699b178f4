# appforge/llm/providers/gemini.py
"""
Google Gemini provider implementation.
"""
import json
from typing import Optional

import aiohttp

from appforge.core.config import settings
from appforge.core.exceptions import GenerationError
from appforge.core.logging import log


DEFAULT_MODEL = "gemini-2.0-flash"
API_URL = "https://generativelanguage.googleapis.com/v1beta/models"


async def call(
    prompt: str,
    system_prompt: str = "",
    model: Optional[str] = None,
    temperature: Optional[float] = None,
    max_tokens: Optional[int] = None,
    json_output: bool = True,
) -> str:
    """
    Call Google Gemini API.

    Args:
        json_output: ask the model for a bare JSON document

    Returns:
        The generated text

    Raises:
        GenerationError on API errors or empty responses
    """
    api_key = settings.llm.gemini_api_key
    if not api_key:
        raise GenerationError("gemini", "GEMINI_API_KEY not configured")

    model = model or settings.llm.default_model or DEFAULT_MODEL
    url = f"{API_URL}/{model}:generateContent?key={api_key}"

    generation_config = {
        "temperature": settings.llm.temperature if temperature is None else temperature,
        "maxOutputTokens": max_tokens or settings.llm.max_tokens,
    }
    if json_output:
        generation_config["responseMimeType"] = "application/json"

    payload = {
        "contents": [{"role": "user", "parts": [{"text": prompt}]}],
        "generationConfig": generation_config,
    }
    if system_prompt:
        payload["systemInstruction"] = {"parts": [{"text": system_prompt}]}

    timeout = aiohttp.ClientTimeout(total=settings.llm.request_timeout)
    async with aiohttp.ClientSession() as session:
        async with session.post(url, json=payload, timeout=timeout) as response:
            text = await response.text()

            if response.status == 429:
                log("LLM", f"[GEMINI] 429 Rate limit response: {text[:500]}")
                raise GenerationError("gemini", f"Rate limited (429): {text[:200]}")

            if response.status != 200:
                log("LLM", f"[GEMINI] Error {response.status}: {text[:500]}")
                raise GenerationError("gemini", f"API error {response.status}: {text[:200]}")

    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise GenerationError("gemini", f"Failed to parse response: {e}")

    candidates = data.get("candidates", [])
    if not candidates:
        raise GenerationError("gemini", "No candidates in response")

    parts = candidates[0].get("content", {}).get("parts", [])
    if not parts:
        raise GenerationError("gemini", "No parts in response")

    usage = data.get("usageMetadata", {})
    log("LLM", f"[GEMINI] tokens in={usage.get('promptTokenCount', 0)} out={usage.get('candidatesTokenCount', 0)}")

    return "".join(part.get("text", "") for part in parts)
