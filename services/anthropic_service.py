"""
Anthropic Claude API Service
Uses claude_key from secrets for authentication
"""

import json
import os
import re
import logging
from typing import Optional, Dict, Any, List
from anthropic import Anthropic

from config import Config
from utils.validators import clean_discovered_cafes

logger = logging.getLogger(__name__)

DISCOVERY_SYSTEM_PROMPT = """You are a cafe discovery engine.
Find 8-10 popular cafes, roasteries, or work-friendly coffee spots in {area}.
Return a purely JSON object with a key "cafes" containing an array.

For each cafe, you MUST provide:
- name: string
- address: string
- coordinates: [latitude, longitude] (numbers)
- rating: number (1-5)
- description: a short, moody, 1-sentence description
- isOpen: boolean (assume true)
- imageUrl: a placeholder like "https://picsum.photos/seed/{{name}}/800/600"
- googleMapsUri: the Google Maps URL if you know it
- amenities: an object with estimated scores (0-10) for: {amenity_keys}.
  Estimate these from the character of the place. Work places have high wifi/outlet/comfort.
  Quick stops have high service/quality."""

_FENCED_JSON = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```", re.IGNORECASE)


def _clean_json_text(text: str) -> str:
    """Strip Markdown code fences around a JSON payload."""
    cleaned = (text or "").strip()
    match = _FENCED_JSON.search(cleaned)
    if match:
        return match.group(1).strip()
    if cleaned.startswith("```"):
        lines = cleaned.split("\n")[1:]
        if lines and lines[-1].strip() == "```":
            lines = lines[:-1]
        cleaned = "\n".join(lines).strip()
    return cleaned


def parse_discovery_response(text: str) -> List[Dict[str, Any]]:
    """Extract cafes from a model reply. Malformed output yields an empty list."""
    cleaned = _clean_json_text(text)
    if not cleaned:
        return []

    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError:
        # Prose around the object: fall back to the outermost braces
        start, end = cleaned.find('{'), cleaned.rfind('}')
        if start == -1 or end <= start:
            logger.warning("Discovery response contained no JSON object")
            return []
        try:
            data = json.loads(cleaned[start:end + 1])
        except json.JSONDecodeError as e:
            logger.warning(f"Failed to parse JSON from discovery response: {e}")
            return []

    if not isinstance(data, dict) or not isinstance(data.get('cafes'), list):
        logger.warning("Discovery response has no 'cafes' array")
        return []

    return clean_discovered_cafes(data['cafes'])


class AnthropicService:
    """Service for interacting with Anthropic Claude API"""

    def __init__(self, api_key: Optional[str] = None, model: Optional[str] = None):
        """Initialize Anthropic client with API key from secrets"""
        self.api_key = api_key or os.environ.get('claude_key')
        self.model = model or Config.ANTHROPIC_MODEL

        if not self.api_key:
            logger.error("claude_key not found in environment variables")
            raise ValueError("claude_key environment variable must be set in secrets")

        self.client = Anthropic(api_key=self.api_key)
        logger.info("Anthropic client initialized successfully")

    def discover_cafes(self, area: Optional[str] = None) -> List[Dict[str, Any]]:
        """
        Ask Claude for work-friendly cafes in an area

        Args:
            area: Neighbourhood/city to search, defaults to Config.DISCOVERY_AREA

        Returns:
            Validated cafe dictionaries (possibly empty)
        """
        area = area or Config.DISCOVERY_AREA
        system_prompt = DISCOVERY_SYSTEM_PROMPT.format(
            area=area,
            amenity_keys=", ".join(Config.AMENITY_KEYS),
        )

        message = self.client.messages.create(
            model=self.model,
            max_tokens=4096,
            temperature=0.4,
            system=system_prompt,
            messages=[
                {
                    "role": "user",
                    "content": f"Find highly rated coffee shops in {area}."
                }
            ]
        )

        response_text = ""
        for content_block in message.content or []:
            if getattr(content_block, 'text', None):
                response_text += content_block.text

        cafes = parse_discovery_response(response_text)
        logger.info(f"Claude proposed {len(cafes)} cafes for {area}")
        return cafes
