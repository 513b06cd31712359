"""Split generation-service output into prose and its trailing metadata block.

Two stages, neither of which raises:

1. A fenced ```json {...} ``` block at the very end of the text.
2. The last ``{`` in the second half of the text, accepted only when it
   parses and carries both ``SectionID`` and ``WordCount``.

Anything else comes back as ``UnparsedResponse`` and the caller treats the
whole text as content.
"""

from __future__ import annotations

import json
import logging
import re

from pydantic import ValidationError

from ..models import GenerationMetadata, GenerationResponse, ParsedResponse, UnparsedResponse

logger = logging.getLogger(__name__)

_JSON_BLOCK_RE = re.compile(r"```json\s*(\{[\s\S]*?\})\s*```\s*$")


def _metadata_from_json(raw: str) -> GenerationMetadata | None:
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        logger.warning("Could not parse metadata JSON from response: %s", e)
        return None
    if not isinstance(data, dict):
        return None
    try:
        return GenerationMetadata.model_validate(data)
    except ValidationError as e:
        logger.warning("Metadata block has unexpected shape: %s", e)
        return None


def _parse_fenced(raw_text: str) -> ParsedResponse | None:
    match = _JSON_BLOCK_RE.search(raw_text)
    if not match:
        return None
    metadata = _metadata_from_json(match.group(1))
    if metadata is None:
        return None
    return ParsedResponse(content=raw_text[:match.start()].strip(), metadata=metadata)


def _parse_tail_brace(raw_text: str) -> ParsedResponse | None:
    brace = raw_text.rfind("{")
    if brace <= len(raw_text) / 2:
        return None
    try:
        data = json.loads(raw_text[brace:])
    except json.JSONDecodeError:
        return None
    if not isinstance(data, dict) or "SectionID" not in data or "WordCount" not in data:
        return None
    try:
        metadata = GenerationMetadata.model_validate(data)
    except ValidationError:
        return None
    return ParsedResponse(content=raw_text[:brace].strip(), metadata=metadata)


def parse_generation_output(raw_text: str) -> ParsedResponse | UnparsedResponse:
    """Tagged parse of raw service output; never raises."""
    text = raw_text or ""
    parsed = _parse_fenced(text) or _parse_tail_brace(text)
    if parsed is not None:
        return parsed
    return UnparsedResponse(raw_text=text)


def to_generation_response(result: ParsedResponse | UnparsedResponse) -> GenerationResponse:
    if isinstance(result, ParsedResponse):
        return GenerationResponse(content=result.content, metadata=result.metadata)
    logger.warning("No metadata block found; treating the whole response as content")
    return GenerationResponse(content=result.raw_text.strip(), metadata=None)
