"""LLM client protocol and field-extraction prompts."""

from src.llm.errors import LlmApiError, LlmProcessingError
from src.llm.prompts import SYSTEM_INSTRUCTION, build_field_prompt, clean_answer
from src.llm.protocols import LlmClient


__all__ = [
    "SYSTEM_INSTRUCTION",
    "LlmApiError",
    "LlmClient",
    "LlmProcessingError",
    "build_field_prompt",
    "clean_answer",
]
