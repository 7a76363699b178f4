# appforge/llm/__init__.py
"""
LLM module - the generator used by the stage pipeline.
"""
from .generator import Generator, LLMGenerator, extract_json

__all__ = ["Generator", "LLMGenerator", "extract_json"]
