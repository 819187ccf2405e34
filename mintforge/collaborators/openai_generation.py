"""
Narrative and portrait generators.

The OpenAI generators call the chat completions and image APIs through the
async client. The static generators are deterministic offline stand-ins for
development and tests.
"""

import base64
import json
import random
import struct
import zlib
from typing import Any

import openai
from openai import AsyncOpenAI
from pydantic import ValidationError

from ..error_types import ValidationReason
from ..exceptions import GenerationFailure, create_error_context
from ..models import CharacterArchetype, CharacterRecord, GameMasterResponse, NarrativeProfile, ToneOptions
from ..structured_logging.enhanced_logging_config import get_logger
from .prompts import GAMEMASTER_ROLE, STORYTELLER_ROLE, action_prompt, portrait_prompt, story_prompt

logger = get_logger(__name__)


def parse_json_object(text: str | None) -> dict[str, Any]:
    """
    Parse a model reply that should hold one JSON object.

    Markdown code fences around the object are tolerated.

    Raises:
        GenerationFailure: If the reply is empty or not a JSON object
    """
    if not text or not text.strip():
        raise GenerationFailure(
            "Model returned an empty reply", reason=ValidationReason.INVALID_GENERATOR_OUTPUT
        )
    cleaned = text.strip()
    if cleaned.startswith("```"):
        cleaned = cleaned.strip("`")
        if cleaned.lower().startswith("json"):
            cleaned = cleaned[4:]
    try:
        parsed = json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise GenerationFailure(
            f"Model reply is not valid JSON: {e}",
            reason=ValidationReason.INVALID_GENERATOR_OUTPUT,
        ) from e
    if not isinstance(parsed, dict):
        raise GenerationFailure(
            f"Model reply is a JSON {type(parsed).__name__}, expected an object",
            reason=ValidationReason.INVALID_GENERATOR_OUTPUT,
        )
    return parsed


class OpenAINarrativeGenerator:
    """Character narratives and action resolutions from an OpenAI chat model."""

    def __init__(
        self,
        client: AsyncOpenAI | None = None,
        *,
        api_key: str | None = None,
        model: str = "gpt-4",
        temperature: float = 0.7,
        timeout: float = 60.0,
    ) -> None:
        self._client = client or AsyncOpenAI(api_key=api_key, timeout=timeout)
        self.model = model
        self.temperature = temperature

    async def _complete(self, system: str, prompt: str, operation: str) -> dict[str, Any]:
        try:
            response = await self._client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": system},
                    {"role": "user", "content": prompt},
                ],
                temperature=self.temperature,
            )
        except openai.APITimeoutError as e:
            raise GenerationFailure(
                f"{operation} timed out", create_error_context(operation=operation), details={"timeout": True}
            ) from e
        except openai.OpenAIError as e:
            raise GenerationFailure(f"{operation} failed: {e}", create_error_context(operation=operation)) from e

        if not response.choices:
            raise GenerationFailure(
                f"{operation} returned no choices", reason=ValidationReason.INVALID_GENERATOR_OUTPUT
            )
        return parse_json_object(response.choices[0].message.content)

    async def generate_narrative(self, archetype: CharacterArchetype, options: ToneOptions) -> NarrativeProfile:
        payload = await self._complete(STORYTELLER_ROLE, story_prompt(archetype, options), "generate_narrative")
        try:
            profile = NarrativeProfile.model_validate(payload)
        except ValidationError as e:
            raise GenerationFailure(
                f"Narrative is missing required fields: {e.error_count()} error(s)",
                reason=ValidationReason.INVALID_GENERATOR_OUTPUT,
                details={"fields": sorted({str(err["loc"][0]) for err in e.errors() if err["loc"]})},
            ) from e
        if not options.include_personality and profile.personality is not None:
            profile = profile.model_copy(update={"personality": None})
        logger.info("Narrative generated", archetype=archetype.value, name=profile.name)
        return profile

    async def narrate_action(self, action: str, record: CharacterRecord, current_scene: str) -> GameMasterResponse:
        payload = await self._complete(GAMEMASTER_ROLE, action_prompt(action, record, current_scene), "narrate_action")
        try:
            return GameMasterResponse.model_validate(payload)
        except ValidationError as e:
            raise GenerationFailure(
                f"Action resolution is malformed: {e.error_count()} error(s)",
                reason=ValidationReason.INVALID_GENERATOR_OUTPUT,
            ) from e


class OpenAIPortraitGenerator:
    """Character portraits from an OpenAI image model, returned as PNG bytes."""

    def __init__(
        self,
        client: AsyncOpenAI | None = None,
        *,
        api_key: str | None = None,
        model: str = "dall-e-2",
        size: str = "1024x1024",
        timeout: float = 120.0,
    ) -> None:
        self._client = client or AsyncOpenAI(api_key=api_key, timeout=timeout)
        self.model = model
        self.size = size

    async def generate_image(self, archetype: CharacterArchetype, description: str) -> bytes:
        try:
            response = await self._client.images.generate(
                model=self.model,
                prompt=portrait_prompt(archetype, description),
                size=self.size,
                n=1,
                response_format="b64_json",
            )
        except openai.APITimeoutError as e:
            raise GenerationFailure(
                "Portrait generation timed out",
                create_error_context(operation="generate_image"),
                details={"timeout": True},
            ) from e
        except openai.OpenAIError as e:
            raise GenerationFailure(
                f"Portrait generation failed: {e}", create_error_context(operation="generate_image")
            ) from e

        if not response.data or not response.data[0].b64_json:
            raise GenerationFailure(
                "Image API returned no image data", reason=ValidationReason.INVALID_GENERATOR_OUTPUT
            )
        try:
            image = base64.b64decode(response.data[0].b64_json, validate=True)
        except ValueError as e:
            raise GenerationFailure(
                "Image API returned undecodable data", reason=ValidationReason.INVALID_GENERATOR_OUTPUT
            ) from e
        logger.info("Portrait generated", archetype=archetype.value, size=len(image))
        return image


_NAME_PARTS: dict[CharacterArchetype, tuple[tuple[str, ...], tuple[str, ...]]] = {
    CharacterArchetype.WARRIOR: (("Brann", "Hilda", "Torvik", "Sigrun"), ("Ironhide", "Stormbreaker", "Ashblade")),
    CharacterArchetype.MAGE: (("Elowen", "Thalric", "Maelis", "Orrin"), ("Starweaver", "Emberquill", "Voss")),
    CharacterArchetype.ROGUE: (("Vex", "Nyla", "Corin", "Sable"), ("Quickfingers", "Shade", "Marrow")),
    CharacterArchetype.CLERIC: (("Aldric", "Seren", "Bede", "Ilsa"), ("Dawnward", "Lightkeeper", "Hallow")),
    CharacterArchetype.BARD: (("Fenna", "Lior", "Pip", "Rosalind"), ("Songbright", "Lutewood", "Merriweather")),
}


class StaticNarrativeGenerator:
    """Deterministic narratives assembled from archetype-keyed name tables."""

    def __init__(self, rng: random.Random | None = None) -> None:
        self._rng = rng or random.Random()

    async def generate_narrative(self, archetype: CharacterArchetype, options: ToneOptions) -> NarrativeProfile:
        first_names, surnames = _NAME_PARTS[archetype]
        name = f"{self._rng.choice(first_names)} {self._rng.choice(surnames)}"
        return NarrativeProfile(
            name=name,
            backstory=f"{name} is a {archetype.value} whose {options.length} tale is told in a {options.tone} tone.",
            appearance=f"A weathered {archetype.value} in travel-worn gear",
            personality="Steadfast and curious" if options.include_personality else None,
        )

    async def narrate_action(self, action: str, record: CharacterRecord, current_scene: str) -> GameMasterResponse:
        return GameMasterResponse(
            description=f"The level {record.level} {record.archetype.value} attempts to {action} in {current_scene}.",
            outcome="success",
            experience=100,
            next_options=["continue", "rest"],
        )


def _png_chunk(kind: bytes, data: bytes) -> bytes:
    return struct.pack(">I", len(data)) + kind + data + struct.pack(">I", zlib.crc32(kind + data) & 0xFFFFFFFF)


_ARCHETYPE_COLORS: dict[CharacterArchetype, bytes] = {
    CharacterArchetype.WARRIOR: b"\xb0\x30\x30",
    CharacterArchetype.MAGE: b"\x30\x30\xb0",
    CharacterArchetype.ROGUE: b"\x30\x30\x30",
    CharacterArchetype.CLERIC: b"\xf0\xe0\x80",
    CharacterArchetype.BARD: b"\x30\xa0\x30",
}


class StaticPortraitGenerator:
    """One-pixel PNG portraits tinted by archetype; the description is kept in a tEXt chunk."""

    async def generate_image(self, archetype: CharacterArchetype, description: str) -> bytes:
        header = struct.pack(">IIBBBBB", 1, 1, 8, 2, 0, 0, 0)
        pixels = zlib.compress(b"\x00" + _ARCHETYPE_COLORS[archetype])
        text = b"Description\x00" + description.encode("latin-1", errors="replace")
        return (
            b"\x89PNG\r\n\x1a\n"
            + _png_chunk(b"IHDR", header)
            + _png_chunk(b"tEXt", text)
            + _png_chunk(b"IDAT", pixels)
            + _png_chunk(b"IEND", b"")
        )
