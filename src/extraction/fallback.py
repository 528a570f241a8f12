"""Fallback extraction boundary and its LLM-backed implementation."""

import asyncio
from typing import Protocol, runtime_checkable

import structlog
from bs4 import BeautifulSoup

from src.extraction.config import DEFAULT_FALLBACK_MAX_CHARS
from src.llm.errors import LlmProcessingError
from src.llm.prompts import SYSTEM_INSTRUCTION, build_field_prompt, clean_answer
from src.llm.protocols import LlmClient


logger = structlog.get_logger()

_NON_CONTENT_TAGS = [
    "script",
    "style",
    "noscript",
    "nav",
    "header",
    "footer",
    "aside",
    "form",
]


@runtime_checkable
class FallbackExtractor(Protocol):
    """Secondary extraction method for fields structured parsing missed.

    Implementations may be slow and non-deterministic (e.g. a remote
    model) and may fail with any exception.
    """

    async def extract(self, html: str, field_hint: str) -> str:
        """Extract one field from raw HTML.

        Args:
            html: Raw HTML of the page.
            field_hint: What to extract, e.g. ``"title"`` or ``"main content"``.

        Returns:
            Extracted text.
        """
        ...


def visible_text(html: str, max_chars: int = DEFAULT_FALLBACK_MAX_CHARS) -> str:
    """Return the readable text of a page, truncated to ``max_chars``.

    Scripts, styles and site chrome (nav, header, footer, aside, forms)
    are removed first.
    """
    soup = BeautifulSoup(html, "lxml")
    for tag in soup(_NON_CONTENT_TAGS):
        tag.decompose()

    lines = (line.strip() for line in soup.get_text(separator="\n").splitlines())
    text = "\n".join(line for line in lines if line)
    return text[:max_chars]


class LlmFallbackExtractor:
    """FallbackExtractor backed by any :class:`LlmClient`.

    The client is synchronous, so calls run in a worker thread to keep
    the event loop free while the model answers.
    """

    def __init__(
        self,
        client: LlmClient,
        max_chars: int = DEFAULT_FALLBACK_MAX_CHARS,
    ) -> None:
        """Initialize the extractor.

        Args:
            client: LLM client used for generation.
            max_chars: Maximum page text characters sent per prompt.
        """
        self._client = client
        self._max_chars = max_chars
        self._log = logger.bind(component="extraction", subcomponent="llm_fallback")

    @property
    def max_chars(self) -> int:
        """Get the page text limit per prompt."""
        return self._max_chars

    async def extract(self, html: str, field_hint: str) -> str:
        """Ask the model for one field of the page.

        Raises:
            LlmProcessingError: If the page has no text or the model
                returns an empty answer.
            LlmApiError: If the client call fails.
        """
        page_text = visible_text(html, self._max_chars)
        if not page_text:
            msg = f"Page has no visible text to extract '{field_hint}' from"
            raise LlmProcessingError(msg)

        prompt = build_field_prompt(field_hint, page_text)
        answer = await asyncio.to_thread(
            self._client.generate_content, prompt, SYSTEM_INSTRUCTION
        )
        value = clean_answer(answer or "")
        if not value:
            msg = f"Model returned no value for '{field_hint}'"
            raise LlmProcessingError(msg)

        self._log.debug(
            "llm_field_extracted",
            field_hint=field_hint,
            prompt_chars=len(prompt),
            answer_chars=len(value),
        )
        return value
