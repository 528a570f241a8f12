"""Prompt templates for LLM field extraction."""

import re


SYSTEM_INSTRUCTION = (
    "You extract a single field from the text of a web page. "
    "Answer with the field value only: no labels, no explanations, "
    "no markdown. Copy text from the page instead of paraphrasing it. "
    "If the page does not contain the field, answer with an empty line."
)

_FIELD_TEMPLATE = """## Field
{field_hint}

## Instructions
{instructions}

## Page Text
{page_text}
"""

_FIELD_INSTRUCTIONS: dict[str, str] = {
    "title": "Return the main headline or title of the page.",
    "main content": (
        "Return the full main body text of the page, without navigation, "
        "advertising, comments or footers. Keep paragraph breaks."
    ),
    "name": "Return the full name of the person the page is about.",
    "details": (
        "Return the person's role, title or position in one short line "
        "(e.g. 'City Council Member, District 3')."
    ),
    "quote text": "Return the quotation itself, without the attribution.",
}

_FENCE = re.compile(r"^```[a-zA-Z]*\s*|\s*```$")


def build_field_prompt(field_hint: str, page_text: str) -> str:
    """Build the user prompt asking for one field.

    Args:
        field_hint: Field description, e.g. ``"main content"``.
        page_text: Visible text of the page.

    Returns:
        Prompt string.
    """
    instructions = _FIELD_INSTRUCTIONS.get(
        field_hint, f"Return the {field_hint} found on the page."
    )
    return _FIELD_TEMPLATE.format(
        field_hint=field_hint,
        instructions=instructions,
        page_text=page_text,
    )


def clean_answer(text: str) -> str:
    """Strip markdown fences and wrapping quotes from a model answer."""
    cleaned = _FENCE.sub("", text.strip()).strip()
    if len(cleaned) >= 2 and cleaned[0] == cleaned[-1] and cleaned[0] in "\"'":
        cleaned = cleaned[1:-1].strip()
    return cleaned
