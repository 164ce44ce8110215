"""
Boundary to the AI receipt extractor.
The extractor itself is an external service; this module validates what it
returns and turns it into receipts tagged as freshly analyzed.
"""

import importlib
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Tuple

from pydantic import ValidationError

from .identity import process_receipts
from .models import ExtractionResult, Receipt, TokenUsage, SOURCE_ANALYZED

logger = logging.getLogger(__name__)

_PROMPT_KEYS = ("promptTokens", "prompt_tokens", "inputTokens", "input_tokens")
_COMPLETION_KEYS = ("completionTokens", "completion_tokens", "outputTokens", "output_tokens")
_TOTAL_KEYS = ("totalTokens", "total_tokens", "tokens")
_USAGE_KEYS = ("tokenUsage", "usage")


class ExtractionError(RuntimeError):
    """Raised when the extractor output is not receipt-shaped."""


class ReceiptExtractor(ABC):
    """Abstract AI service that reads a receipt image."""

    @abstractmethod
    def extract(self, image: bytes, mime_type: str) -> Dict[str, Any]:
        """Return a raw receipt-shaped dict, optionally with token usage.

        Expected keys: products, total, and optionally tax, subtotal, store,
        date, plus ``usage`` or ``tokenUsage``.
        """


def load_extractor(path: Optional[str]) -> Optional[ReceiptExtractor]:
    """Instantiate the extractor named by a ``module:Class`` import path.

    Returns None when no path is configured.

    Raises:
        ExtractionError: If the path cannot be imported or does not name a
            ReceiptExtractor
    """
    if not path:
        return None
    module_name, _, class_name = path.partition(":")
    if not module_name or not class_name:
        raise ExtractionError(f"Extractor path must look like 'module:Class', got {path!r}")
    try:
        extractor_class = getattr(importlib.import_module(module_name), class_name)
    except (ImportError, AttributeError) as e:
        raise ExtractionError(f"Cannot load extractor {path!r}: {str(e)}") from e
    if not (isinstance(extractor_class, type) and issubclass(extractor_class, ReceiptExtractor)):
        raise ExtractionError(f"{path!r} is not a ReceiptExtractor")
    logger.info(f"Using receipt extractor {path}")
    return extractor_class()


def _first_count(usage: Dict[str, Any], keys: Tuple[str, ...]) -> int:
    for key in keys:
        value = usage.get(key)
        if value:
            try:
                return max(int(value), 0)
            except (TypeError, ValueError):
                continue
    return 0


def normalize_token_usage(usage: Any) -> TokenUsage:
    """Read token counts under any of the names AI SDKs use.

    When only a total is reported it is split 80/20 between prompt and
    completion, which is typical for image prompts.
    """
    if not isinstance(usage, dict):
        return TokenUsage()
    prompt = _first_count(usage, _PROMPT_KEYS)
    completion = _first_count(usage, _COMPLETION_KEYS)
    total = _first_count(usage, _TOTAL_KEYS)

    if total > 0 and prompt == 0 and completion == 0:
        prompt = int(total * 0.8)
        completion = int(total * 0.2)

    return TokenUsage(prompt_tokens=prompt, completion_tokens=completion, total_tokens=total)


def parse_extraction_payload(raw: Any) -> ExtractionResult:
    """Validate an extractor payload.

    Raises:
        ExtractionError: If the payload is not a dict or fails validation
    """
    if not isinstance(raw, dict):
        raise ExtractionError(f"Extractor returned {type(raw).__name__}, expected an object")

    payload = dict(raw)
    usage = None
    for key in _USAGE_KEYS:
        if key in payload:
            usage = payload.pop(key)
    # Identity and provenance are assigned here, never by the extractor
    for key in ("id", "source", "duplicateOf", "duplicate_of"):
        payload.pop(key, None)

    try:
        receipt = Receipt.model_validate(payload)
    except ValidationError as e:
        raise ExtractionError(f"Extractor output is not a valid receipt: {e.error_count()} error(s)") from e

    receipt = process_receipts([receipt], SOURCE_ANALYZED)[0]
    return ExtractionResult(receipt=receipt, token_usage=normalize_token_usage(usage))


def analyze_image(extractor: ReceiptExtractor, image: bytes, mime_type: str) -> ExtractionResult:
    """Run the extractor on one image and validate the result."""
    result = parse_extraction_payload(extractor.extract(image, mime_type))
    usage = result.token_usage
    logger.info(f"Extracted {result.receipt.item_count} products "
                f"({usage.prompt_tokens} prompt + {usage.completion_tokens} completion "
                f"= {usage.total_tokens} tokens)")
    return result


def analyze_batch(extractor: ReceiptExtractor, images: List[Tuple[str, bytes, str]]) -> List[ExtractionResult]:
    """Analyze several images, skipping the ones that fail.

    Args:
        extractor: AI extractor
        images: (filename, content, mime type) triples

    Returns:
        Results for the images that were analyzed successfully, in input order
    """
    results = []
    for filename, content, mime_type in images:
        try:
            results.append(analyze_image(extractor, content, mime_type))
        except Exception as e:
            logger.error(f"Failed to analyze {filename}: {str(e)}")
    logger.info(f"Analyzed {len(results)} of {len(images)} images")
    return results
