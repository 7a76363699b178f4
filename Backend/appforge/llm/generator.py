# appforge/llm/generator.py
"""
Generator boundary.

The pipeline only needs `generate(prompt, context, shape)` to return an
instance of `shape`. LLMGenerator fulfils that with a JSON-mode model call
validated by pydantic.
"""
import json
import re
from typing import Any, Awaitable, Callable, Dict, Optional, Protocol, Type, TypeVar

from pydantic import BaseModel, ValidationError

from appforge.core.config import settings
from appforge.core.exceptions import GenerationError
from appforge.core.logging import log
from appforge.llm.providers import gemini


T = TypeVar("T", bound=BaseModel)

ProviderCall = Callable[..., Awaitable[str]]

SYSTEM_PROMPT = (
    "You are the planning engine of an application builder. "
    "Respond with a single JSON document that matches the requested JSON schema. "
    "Do not wrap it in markdown and do not add commentary."
)

_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$", re.MULTILINE)


class Generator(Protocol):
    async def generate(self, stage_prompt: str, context: Dict[str, Any], shape: Type[T]) -> T:
        ...


def extract_json(text: str) -> Any:
    """Parse the first JSON object in a model reply, tolerating code fences."""
    cleaned = _FENCE.sub("", text.strip())
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError:
        pass

    start, end = cleaned.find("{"), cleaned.rfind("}")
    if start == -1 or end <= start:
        raise ValueError("no JSON object found in response")
    return json.loads(cleaned[start:end + 1])


class LLMGenerator:
    """Generator backed by an LLM provider call."""

    def __init__(self, call: Optional[ProviderCall] = None, provider_name: Optional[str] = None):
        self.provider_name = provider_name or settings.llm.default_provider
        self._call = call or gemini.call

    def build_prompt(self, stage_prompt: str, context: Dict[str, Any], shape: Type[BaseModel]) -> str:
        sections = [stage_prompt.strip()]
        if context:
            sections.append("CONTEXT:\n" + json.dumps(context, indent=2, default=str))
        sections.append("RESPONSE JSON SCHEMA:\n" + json.dumps(shape.model_json_schema(), indent=2))
        return "\n\n".join(sections)

    async def generate(self, stage_prompt: str, context: Dict[str, Any], shape: Type[T]) -> T:
        prompt = self.build_prompt(stage_prompt, context, shape)
        log("LLM", f"🧠 Requesting {shape.__name__} ({len(prompt)} chars)")

        try:
            text = await self._call(prompt=prompt, system_prompt=SYSTEM_PROMPT)
        except GenerationError:
            raise
        except Exception as e:
            raise GenerationError(self.provider_name, f"Provider error: {e}") from e

        try:
            data = extract_json(text)
        except ValueError as e:
            raise GenerationError(self.provider_name, f"Unparseable {shape.__name__} response: {e}") from e

        try:
            return shape.model_validate(data)
        except ValidationError as e:
            raise GenerationError(
                self.provider_name,
                f"Response does not match {shape.__name__}: {e.error_count()} errors",
            ) from e
