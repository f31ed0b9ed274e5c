"""Turn a free-text BART question into a structured TransitIntent.

Uses Claude when ANTHROPIC_API_KEY is configured, and the keyword heuristics
otherwise (or whenever the model call fails).
"""

import json
import logging
import os
from typing import Optional

from anthropic import AsyncAnthropic
from pydantic import ValidationError

from trainbot.aliases import BART_ABBREVIATION_MAP, sorted_aliases
from trainbot.models import ChatMessage, IntentType, TransitIntent

logger = logging.getLogger("trainbot.nlp")

DEFAULT_MODEL = "claude-sonnet-4-20250514"
HISTORY_LIMIT = 10

SYSTEM_PROMPT = """You are an NLP engine for a BART transit app. Your job is ONLY to return structured JSON, never explanations or natural language. ALWAYS output exactly ONE JSON object.

Format:
{
  "intent": "string",
  "origin": "string" or null,
  "destination": "string" or null,
  "direction": "North" | "South" | null
}

Supported intents: "next_train", "next_connecting_trains", "nearby_stops", "undefined".

Rules:
- If the user asks about the next train at a single station, set intent = "next_train".
- If the user asks about the next train from one station to another, set intent = "next_connecting_trains".
- If the user asks for nearby stops, use "nearby_stops".
- Extract station names exactly as written by the user. NEVER guess stations.
- Phrases like "to X", "towards X", "headed to X", "going to X" indicate destination = X.
- If the user says "train to B" without an origin, origin = null and destination = B.
- If the user mentions only one station with no destination ("Next Daly City bart"), origin = that station.
- Set direction only when the user says north or south.
- ALWAYS return valid JSON only."""


def _get_api_key() -> str:
    return os.getenv("ANTHROPIC_API_KEY", "")


def _get_model() -> str:
    return os.getenv("ANTHROPIC_MODEL", "") or DEFAULT_MODEL


# --- keyword heuristics ---


def extract_direction(query: str) -> Optional[str]:
    lowered = query.lower()
    if "north" in lowered:
        return "North"
    if "south" in lowered:
        return "South"
    return None


def _split_destination(lowered: str) -> tuple[str, Optional[str]]:
    """Split a lowercased query at the first " to " / " towards " marker."""
    for marker in (" to ", " towards "):
        before, found, after = lowered.partition(marker)
        if found:
            return before, after.strip()
    return lowered, None


def _first_contained_alias(text: str, aliases: list[str]) -> Optional[str]:
    for alias in aliases:
        if alias.lower() in text:
            return alias
    return None


def extract_origin(query: str, alias_map: dict[str, str] = BART_ABBREVIATION_MAP) -> Optional[str]:
    lowered = query.lower()
    aliases = sorted_aliases(alias_map)

    # "next <station> bart" names the station exactly
    start = lowered.find("next ")
    end = lowered.find(" bart")
    if start != -1 and end != -1 and start + len("next ") < end:
        candidate = lowered[start + len("next "):end].strip()
        for alias in aliases:
            if candidate == alias.lower():
                return alias

    before, _ = _split_destination(lowered)
    return _first_contained_alias(before, aliases)


def extract_destination(query: str, alias_map: dict[str, str] = BART_ABBREVIATION_MAP) -> Optional[str]:
    _, after = _split_destination(query.lower())
    if not after:
        return None
    return _first_contained_alias(after, sorted_aliases(alias_map))


def canonical_station(name: Optional[str], alias_map: dict[str, str] = BART_ABBREVIATION_MAP) -> Optional[str]:
    """Snap a user-typed station name onto a known alias key."""
    if not name:
        return None
    if name in alias_map:
        return name
    lowered = name.lower().strip()
    aliases = sorted_aliases(alias_map)
    for alias in aliases:
        if alias.lower() == lowered:
            return alias
    return _first_contained_alias(lowered, aliases)


def parse_query_heuristically(query: str, alias_map: dict[str, str] = BART_ABBREVIATION_MAP) -> TransitIntent:
    lowered = query.lower()
    direction = extract_direction(query)

    if "nearby" in lowered and "bart" in lowered:
        return TransitIntent(intent=IntentType.NEARBY_STOPS)

    if "next" in lowered and "bart" in lowered:
        _, destination_text = _split_destination(lowered)
        if destination_text is not None:
            return TransitIntent(
                intent=IntentType.NEXT_CONNECTING_TRAINS,
                origin=extract_origin(query, alias_map),
                destination=extract_destination(query, alias_map),
                direction=direction,
            )
        return TransitIntent(
            intent=IntentType.NEXT_TRAIN,
            origin=extract_origin(query, alias_map),
            direction=direction,
        )

    return TransitIntent(intent=IntentType.UNDEFINED, direction=direction)


# --- model-backed parsing ---


def _strip_code_fences(content: str) -> str:
    return content.strip().replace("```json", "").replace("```", "").strip()


async def _parse_with_claude(query: str, history: Optional[list[ChatMessage]] = None) -> TransitIntent:
    client = AsyncAnthropic(api_key=_get_api_key())

    # Build message history, most recent turns only
    messages = []
    for msg in (history or [])[-HISTORY_LIMIT:]:
        messages.append({"role": msg.role, "content": msg.content})
    messages.append({"role": "user", "content": query})

    response = await client.messages.create(
        model=_get_model(),
        max_tokens=150,
        system=SYSTEM_PROMPT,
        messages=messages,
    )

    text = ""
    for block in response.content:
        if hasattr(block, "text"):
            text += block.text

    payload = json.loads(_strip_code_fences(text))
    intent = TransitIntent.model_validate(payload)
    return intent.model_copy(
        update={
            "origin": canonical_station(intent.origin),
            "destination": canonical_station(intent.destination),
            "direction": intent.direction or extract_direction(query),
        }
    )


async def parse_query(query: str, history: Optional[list[ChatMessage]] = None) -> TransitIntent:
    """Classify a query, preferring Claude and falling back to keyword rules.

    `history` holds earlier chat turns. Only the Claude path reads it; the
    keyword rules look at the current message alone.
    """
    if not _get_api_key() or _get_api_key() == "your-anthropic-api-key-here":
        return parse_query_heuristically(query)

    try:
        intent = await _parse_with_claude(query, history)
        logger.info(f"Claude parsed intent: {intent.intent.value}")
        return intent
    except (json.JSONDecodeError, ValidationError) as e:
        logger.warning(f"Claude returned an unusable intent, using keyword rules: {e}")
    except Exception as e:
        logger.error(f"Claude API error, using keyword rules: {e}")
    return parse_query_heuristically(query)
