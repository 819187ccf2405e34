"""
Creation saga data model: narrative options, artifacts and results.
"""

from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .character import CharacterRecord


class CreationStage(str, Enum):
    """Ordered stages of the creation and evolution sagas."""

    ROLL_ATTRIBUTES = "roll_attributes"
    NARRATIVE = "narrative"
    PORTRAIT = "portrait"
    PUBLISH_IMAGE = "publish_image"
    BUILD_METADATA = "build_metadata"
    PUBLISH_METADATA = "publish_metadata"
    MINT = "mint"
    EVOLVE = "evolve"


CREATION_STAGES: tuple[CreationStage, ...] = (
    CreationStage.ROLL_ATTRIBUTES,
    CreationStage.NARRATIVE,
    CreationStage.PORTRAIT,
    CreationStage.PUBLISH_IMAGE,
    CreationStage.BUILD_METADATA,
    CreationStage.PUBLISH_METADATA,
    CreationStage.MINT,
)

EVOLUTION_STAGES: tuple[CreationStage, ...] = CREATION_STAGES[:-1] + (CreationStage.EVOLVE,)


class ToneOptions(BaseModel):
    """Narrative tone and length options passed to the narrative generator."""

    model_config = ConfigDict(frozen=True)

    length: Literal["short", "medium", "long"] = "short"
    tone: Literal["heroic", "mysterious", "tragic", "comedic"] = "heroic"
    include_personality: bool = True


class NarrativeProfile(BaseModel):
    """Generated character narrative."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    name: str = Field(min_length=1)
    backstory: str = Field(min_length=1)
    appearance: str = Field(min_length=1)
    personality: str | None = None

    @field_validator("name", "backstory", "appearance")
    @classmethod
    def strip_text(cls, v: str) -> str:
        """Generated text must carry something besides whitespace."""
        stripped = v.strip()
        if not stripped:
            raise ValueError("generated text must not be blank")
        return stripped


class CreationArtifact(BaseModel):
    """Off-chain artifacts of one creation attempt. Never reused by a retry."""

    model_config = ConfigDict(frozen=True)

    narrative: NarrativeProfile
    image_uri: str
    metadata_uri: str

    @property
    def appearance(self) -> str:
        return self.narrative.appearance

    @property
    def personality(self) -> str | None:
        return self.narrative.personality


class CreationResult(BaseModel):
    """Outcome of a successful creation saga."""

    model_config = ConfigDict(frozen=True)

    token_id: int
    tx_ref: str
    tx_link: str | None = None
    record: CharacterRecord
    artifact: CreationArtifact
    metadata: dict[str, Any]


class EvolutionResult(BaseModel):
    """Outcome of a successful evolution saga."""

    model_config = ConfigDict(frozen=True)

    retired: CharacterRecord
    successor: CharacterRecord
    artifact: CreationArtifact
    tx_ref: str
