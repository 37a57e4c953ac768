'''
Name: apps/scheduler/utils/screenshot.py
Description: Pull ticket numbers and titles out of a project-board screenshot
                with a vision model. Output that is not valid JSON falls back to
                a regex scan for ticket-like labels (labels only, no titles).
'''

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from django.conf import settings
from google import genai
from google.genai import types
from pydantic import BaseModel, TypeAdapter, ValidationError, field_validator, model_validator

from ..exceptions import ExtractionError
from .constants import LOGGER_NAME, TICKET_LABEL_PATTERN

logger = logging.getLogger(LOGGER_NAME)


EXTRACTION_PROMPT = """This is a screenshot of a project management board (Jira, Linear, etc.) with tasks/tickets.

Extract ALL visible tasks. For each task, extract:
1. Ticket number/ID (e.g., TMI-1951, MKTG-1884, etc.)
2. The full task title/description shown next to the ticket number

Example from image:
- If you see "TMI-1951  Income Shifting: Savings calculated across all businesses..."
  Extract: { "ticketNumber": "TMI-1951", "title": "Income Shifting: Savings calculated across all businesses" }

Return a JSON array ONLY (no markdown, no code fences):
[
  { "ticketNumber": "TMI-1951", "title": "Income Shifting: Savings calculated across all businesses" }
]

Rules:
- Extract the COMPLETE task title/description, not just the first few words
- Include all visible tickets, even if partially truncated
- If a ticket has no visible title, use the ticket number as the title
- Return [] if no tickets found
- CRITICAL: Return ONLY the JSON array, no other text
"""


# ── Model output schema ─────

class BoardTicket(BaseModel):
    """One entry of the JSON array the vision model returns."""
    ticketNumber: Optional[str] = None
    title: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def _objects_only(cls, value):
        # stray strings/numbers in the array become empty entries and are dropped
        return value if isinstance(value, dict) else {}

    @field_validator("ticketNumber", "title", mode="before")
    @classmethod
    def _non_blank_string(cls, value):
        if not isinstance(value, str) or not value.strip():
            return None
        return value.strip()


_BOARD_TICKETS = TypeAdapter(List[BoardTicket])


@dataclass(frozen=True)
class ExtractedTicket:
    label: str
    title: Optional[str] = None

    def as_entry(self):
        return {"label": self.label, "title": self.title}


@dataclass
class ExtractionResult:
    tickets: List[ExtractedTicket] = field(default_factory=list)
    # True when titles were lost to the regex fallback
    partial: bool = False


def sniff_mime_type(data: bytes) -> str:
    if data[:2] == b"\x89P":
        return "image/png"
    if data[:2] == b"GI":
        return "image/gif"
    if data[:2] == b"RI":
        return "image/webp"
    return "image/jpeg"


def _strip_fences(text: str) -> str:
    text = text.strip()
    if text.startswith("```"):
        text = text.split("\n", 1)[1] if "\n" in text else ""
        if text.rstrip().endswith("```"):
            text = text.rstrip()[:-3]
    return text.strip()


def _from_board_tickets(entries) -> ExtractionResult:
    tickets = [ExtractedTicket(e.ticketNumber, e.title) for e in entries if e.ticketNumber]
    logger.debug("extraction: tickets=%d of %d entries", len(tickets), len(entries))
    return ExtractionResult(tickets)


def parse_extraction(content: str) -> ExtractionResult:
    '''
    Model output text -> ExtractionResult.
    A JSON array keeps only entries with a non-empty string ticketNumber.
    Valid JSON that is not an array yields nothing.
    Anything unparseable is scanned for labels instead.
    '''
    content = (content or "").strip()
    try:
        entries = _BOARD_TICKETS.validate_json(_strip_fences(content))
    except ValidationError as e:
        if any(err["type"] == "list_type" and not err["loc"] for err in e.errors()):
            logger.warning("parse_extraction: expected a JSON array")
            return ExtractionResult()
        labels = TICKET_LABEL_PATTERN.findall(content)
        logger.warning("parse_extraction: non-JSON output, regex fallback found %d labels", len(labels))
        return ExtractionResult([ExtractedTicket(label) for label in labels], partial=True)
    return _from_board_tickets(entries)


def extract_tickets(image: bytes, client=None, model: Optional[str] = None) -> ExtractionResult:
    '''
    Send the screenshot to the vision model and parse what comes back.
    The reply is requested against the BoardTicket schema; when the SDK could
    not parse it, the raw text goes through parse_extraction.
    Raises ExtractionError when the model call itself fails.
    '''
    if not image:
        raise ExtractionError("Empty screenshot")
    model = model or settings.GEMINI_MODEL
    mime_type = sniff_mime_type(image)
    logger.info("extract_tickets: model=%s mime=%s bytes=%d", model, mime_type, len(image))
    try:
        client = client or genai.Client(api_key=settings.GEMINI_API_KEY)
        response = client.models.generate_content(
            model=model,
            contents=[
                types.Part.from_bytes(data=image, mime_type=mime_type),
                EXTRACTION_PROMPT,
            ],
            config=types.GenerateContentConfig(
                temperature=0,
                response_mime_type="application/json",
                response_schema=list[BoardTicket],
            ),
        )
    except Exception as e:
        logger.exception("extract_tickets: model call failed")
        raise ExtractionError(f"Failed to extract tickets from image: {e}") from e

    if isinstance(response.parsed, list):
        return _from_board_tickets(response.parsed)
    return parse_extraction(response.text or "")
