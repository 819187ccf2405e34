"""
Narrow contracts for the collaborators the saga depends on.

Implementations raise the MintForge taxonomy (GenerationFailure,
PublishFailure, LedgerFailure, NotFoundFailure); anything else they raise is
wrapped by the orchestrator as the failure type of the stage that called them.
"""

from typing import Any, Protocol, runtime_checkable

from ..models import (
    AdvanceSeasonOperation,
    CharacterArchetype,
    CharacterRecord,
    EvolveOperation,
    EvolveReceipt,
    ExperienceReceipt,
    GameMasterResponse,
    GrantExperienceOperation,
    MintOperation,
    MintReceipt,
    NarrativeProfile,
    SeasonReceipt,
    ToneOptions,
    TransferOperation,
    TransferReceipt,
)


@runtime_checkable
class ContentPublisher(Protocol):
    """Bytes or JSON in, permanent content identifier (URI) out."""

    async def publish(self, content: bytes | dict[str, Any], display_name: str) -> str: ...

    async def unpin(self, uri: str) -> bool: ...

    async def fetch(self, uri: str) -> bytes: ...


@runtime_checkable
class NarrativeGenerator(Protocol):
    """Structured prompt in, character narrative out."""

    async def generate_narrative(self, archetype: CharacterArchetype, options: ToneOptions) -> NarrativeProfile: ...

    async def narrate_action(self, action: str, record: CharacterRecord, current_scene: str) -> GameMasterResponse: ...


@runtime_checkable
class PortraitGenerator(Protocol):
    """Character description in, image bytes out."""

    async def generate_image(self, archetype: CharacterArchetype, description: str) -> bytes: ...


@runtime_checkable
class LedgerClient(Protocol):
    """Typed on-chain writes and reads."""

    async def mint(self, operation: MintOperation) -> MintReceipt: ...

    async def transfer(self, operation: TransferOperation) -> TransferReceipt: ...

    async def grant_experience(self, operation: GrantExperienceOperation) -> ExperienceReceipt: ...

    async def evolve(self, operation: EvolveOperation) -> EvolveReceipt: ...

    async def advance_season(self, operation: AdvanceSeasonOperation) -> SeasonReceipt: ...

    async def read_owner(self, token_id: int) -> str: ...

    async def read_record(self, token_id: int) -> CharacterRecord: ...

    async def read_total_supply(self) -> int: ...

    async def read_current_season(self) -> int: ...
