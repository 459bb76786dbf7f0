"""
Checks that extracted and summarized content is worth saving

Items that fail these checks are rejected before they are persisted and
before any XP is awarded.
"""
from typing import List, Optional

from pydantic import BaseModel

EXTRACTION_ERROR_PHRASES = (
    "content could not be extracted",
    "tweet content could not be extracted",
    "instagram content could not be extracted",
    "failed to extract",
    "unable to extract",
)
SUMMARY_FALLBACK_PHRASES = (
    "content could not be extracted",
    "summarization failed",
    "summary unavailable",
    "image could not be analyzed",
)
FAILURE_TAGS = ("llm_failed", "processing_failed", "extraction_failed")

MIN_CONTENT_CHARS = 20
MIN_SINGLE_BULLET_CHARS = 30


class ValidationResult(BaseModel):
    is_valid: bool
    error: Optional[str] = None
    reason: Optional[str] = None


VALID = ValidationResult(is_valid=True)


def validate_extracted_content(content: Optional[str], author: Optional[str] = None) -> ValidationResult:
    text = (content or "").strip()
    if not text:
        return ValidationResult(
            is_valid=False,
            error="Content extraction failed",
            reason="No content could be extracted from this URL",
        )

    lowered = text.lower()
    if any(phrase in lowered for phrase in EXTRACTION_ERROR_PHRASES):
        return ValidationResult(
            is_valid=False,
            error="Content extraction failed",
            reason="The content could not be extracted from this URL",
        )

    if author == "Unknown":
        return ValidationResult(
            is_valid=False,
            error="Content extraction failed",
            reason="Unable to identify the author of this content",
        )

    if len(text) < MIN_CONTENT_CHARS:
        return ValidationResult(
            is_valid=False,
            error="Insufficient content",
            reason="The extracted content is too short to be meaningful",
        )

    return VALID


def validate_summary(summary: List[str], tags: List[str]) -> ValidationResult:
    summary_text = " ".join(summary or []).lower()
    if any(phrase in summary_text for phrase in SUMMARY_FALLBACK_PHRASES):
        return ValidationResult(
            is_valid=False,
            error="Content processing failed",
            reason="Unable to generate a meaningful summary for this content",
        )

    if any(tag in FAILURE_TAGS for tag in tags or []):
        return ValidationResult(
            is_valid=False,
            error="Content processing failed",
            reason="The content could not be processed successfully",
        )

    if summary is not None and len(summary) == 1 and len(summary[0]) < MIN_SINGLE_BULLET_CHARS:
        return ValidationResult(
            is_valid=False,
            error="Insufficient content",
            reason="The processed content is too minimal to be useful",
        )

    return VALID


def validate_item_data(
    content: Optional[str],
    author: Optional[str],
    summary: List[str],
    tags: List[str],
) -> ValidationResult:
    """Extraction checks first, then summary checks; first failure wins"""
    result = validate_extracted_content(content, author)
    if not result.is_valid:
        return result
    return validate_summary(summary, tags)
