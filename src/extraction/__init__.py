"""Adaptive content extraction.

Fetches web pages, parses them into typed records with CSS selectors,
and repairs incomplete or unparseable results with a fallback
extractor. Selectors that work for a domain can be learned and reused.
"""

from src.extraction.adaptive import AdaptiveParser
from src.extraction.cache import SelectorCache
from src.extraction.collection import CollectionExtractor
from src.extraction.config import ExtractionConfig
from src.extraction.errors import (
    ExtractionError,
    FallbackExtractionFailedError,
    InvalidEncodingError,
    InvalidResponseError,
    InvalidStructureError,
    NoItemsFoundError,
    UnsupportedFallbackTypeError,
)
from src.extraction.fallback import FallbackExtractor, LlmFallbackExtractor
from src.extraction.metrics import ExtractionMetrics
from src.extraction.models import ExtractionResult, ExtractionSource, FieldPatchWarning
from src.extraction.parsers import StructuredParser, get_parser, register_parser
from src.extraction.records import (
    Article,
    Event,
    FieldDescriptor,
    NewsStory,
    Person,
    Quote,
    StructuredRecord,
)
from src.extraction.selectors import SelectorSet, apply_selectors, discover_selectors
from src.extraction.service import ContentExtractionService
from src.extraction.state_machine import ParseState, ParseStateMachine
from src.extraction.validator import CompletenessValidator


__all__ = [
    # Service
    "ContentExtractionService",
    "AdaptiveParser",
    "CollectionExtractor",
    "ExtractionConfig",
    # Records
    "Article",
    "Event",
    "FieldDescriptor",
    "NewsStory",
    "Person",
    "Quote",
    "StructuredRecord",
    # Parsing
    "CompletenessValidator",
    "ParseState",
    "ParseStateMachine",
    "StructuredParser",
    "get_parser",
    "register_parser",
    # Selectors
    "SelectorCache",
    "SelectorSet",
    "apply_selectors",
    "discover_selectors",
    # Fallback
    "FallbackExtractor",
    "LlmFallbackExtractor",
    # Results
    "ExtractionResult",
    "ExtractionSource",
    "FieldPatchWarning",
    # Metrics
    "ExtractionMetrics",
    # Errors
    "ExtractionError",
    "FallbackExtractionFailedError",
    "InvalidEncodingError",
    "InvalidResponseError",
    "InvalidStructureError",
    "NoItemsFoundError",
    "UnsupportedFallbackTypeError",
]
