"""
Creation orchestrator for MintForge.

Drives the creation saga for one character: roll attributes, generate the
narrative, generate the portrait, publish the portrait, build and publish the
metadata document, then mint. Stages run strictly in order and the first
failure aborts the saga; nothing is minted unless every earlier stage
succeeded. Content published by an aborted saga is left orphaned and a retry
starts from scratch.

Evolution reuses the first six stages for the successor and ends with the
ledger's evolve operation instead of a mint.
"""

import asyncio
import uuid
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from sqlalchemy.exc import SQLAlchemyError

from ..collaborators.protocols import ContentPublisher, LedgerClient, NarrativeGenerator, PortraitGenerator
from ..config.models import CreationConfig
from ..error_types import ValidationReason
from ..exceptions import (
    CreationCancelled,
    GenerationFailure,
    LedgerFailure,
    MintForgeError,
    PublishFailure,
    ValidationFailure,
    create_error_context,
    handle_exception,
)
from ..models import (
    ATTRIBUTE_ORDER,
    AttributeSet,
    CharacterArchetype,
    CharacterRecord,
    CreationArtifact,
    CreationResult,
    CreationStage,
    EvolutionResult,
    EvolveOperation,
    MintOperation,
    NarrativeProfile,
    ToneOptions,
)
from ..persistence.owner_index import OwnerIndex
from ..structured_logging.enhanced_logging_config import get_logger
from ..structured_logging.logging_context import bind_request_context, unbind_request_context
from ..utils.error_logging import log_and_raise
from .progression_engine import ProgressionEngine
from .stats_roller import StatRoller

logger = get_logger(__name__)

T = TypeVar("T")

_STAGE_FAILURES: dict[CreationStage, type[MintForgeError]] = {
    CreationStage.ROLL_ATTRIBUTES: ValidationFailure,
    CreationStage.NARRATIVE: GenerationFailure,
    CreationStage.PORTRAIT: GenerationFailure,
    CreationStage.PUBLISH_IMAGE: PublishFailure,
    CreationStage.BUILD_METADATA: ValidationFailure,
    CreationStage.PUBLISH_METADATA: PublishFailure,
    CreationStage.MINT: LedgerFailure,
    CreationStage.EVOLVE: LedgerFailure,
}

_SAGA_CONTEXT_KEYS = ("correlation_id", "saga_id", "owner", "token_id", "saga")


def build_metadata(
    narrative: NarrativeProfile,
    archetype: CharacterArchetype,
    attributes: AttributeSet,
    image_uri: str,
    level: int = 1,
) -> dict[str, Any]:
    """
    Build the token metadata document.

    The trait list holds Class, Level, the six attributes in canonical order
    and Personality ("Unknown" when the narrative has none).
    """
    traits: list[dict[str, Any]] = [
        {"trait_type": "Class", "value": archetype.value},
        {"trait_type": "Level", "value": level},
    ]
    traits.extend(
        {"trait_type": attribute.value.capitalize(), "value": attributes.get(attribute)}
        for attribute in ATTRIBUTE_ORDER
    )
    traits.append({"trait_type": "Personality", "value": narrative.personality or "Unknown"})
    return {
        "name": narrative.name,
        "description": narrative.backstory,
        "image": image_uri,
        "attributes": traits,
    }


class CreationOrchestrator:
    """Runs creation and evolution sagas against the collaborators."""

    def __init__(
        self,
        roller: StatRoller,
        narrative: NarrativeGenerator,
        portrait: PortraitGenerator,
        publisher: ContentPublisher,
        ledger: LedgerClient,
        engine: ProgressionEngine | None = None,
        config: CreationConfig | None = None,
        owner_index: OwnerIndex | None = None,
    ) -> None:
        self.roller = roller
        self.narrative = narrative
        self.portrait = portrait
        self.publisher = publisher
        self.ledger = ledger
        self.engine = engine or ProgressionEngine()
        self.config = config or CreationConfig()
        self.owner_index = owner_index
        logger.info("CreationOrchestrator initialized", indexed=owner_index is not None)

    def default_tone(self) -> ToneOptions:
        return ToneOptions(
            tone=self.config.tone,
            length=self.config.length,
            include_personality=self.config.include_personality,
        )

    def _timeout_for(self, stage: CreationStage) -> float | None:
        if stage is CreationStage.NARRATIVE:
            return self.config.narrative_timeout_seconds
        if stage is CreationStage.PORTRAIT:
            return self.config.portrait_timeout_seconds
        if stage in (CreationStage.PUBLISH_IMAGE, CreationStage.PUBLISH_METADATA):
            return self.config.publish_timeout_seconds
        if stage in (CreationStage.MINT, CreationStage.EVOLVE):
            return self.config.ledger_timeout_seconds
        return None

    @staticmethod
    def _check_cancelled(stage: CreationStage, cancel_event: asyncio.Event | None) -> None:
        if cancel_event is not None and cancel_event.is_set():
            logger.info("Saga cancelled", next_stage=stage.value)
            raise CreationCancelled(
                f"Saga cancelled before stage {stage.value}",
                create_error_context(operation="saga"),
                stage=stage,
            )

    async def _run_stage(
        self,
        stage: CreationStage,
        step: Callable[[], Awaitable[T]],
        cancel_event: asyncio.Event | None,
    ) -> T:
        """Run one collaborator stage under its timeout, mapping every failure to the stage's type."""
        self._check_cancelled(stage, cancel_event)
        failure_class = _STAGE_FAILURES[stage]
        logger.debug("Saga stage started", stage=stage.value)
        try:
            return await asyncio.wait_for(step(), timeout=self._timeout_for(stage))
        except MintForgeError as e:
            raise e.with_stage(stage)
        except TimeoutError as e:
            raise failure_class(
                f"Stage {stage.value} timed out",
                create_error_context(operation="saga"),
                details={"timeout": True},
                stage=stage,
            ) from e
        except Exception as e:
            raise handle_exception(e, create_error_context(operation="saga"), default=failure_class).with_stage(
                stage
            ) from e

    async def _produce_artifact(
        self,
        archetype: CharacterArchetype,
        tone: ToneOptions,
        cancel_event: asyncio.Event | None,
    ) -> tuple[AttributeSet, CreationArtifact, dict[str, Any]]:
        """Stages 1-6: everything up to, not including, the ledger write."""
        self._check_cancelled(CreationStage.ROLL_ATTRIBUTES, cancel_event)
        attributes = self.roller.roll(archetype)

        narrative = await self._run_stage(
            CreationStage.NARRATIVE,
            lambda: self.narrative.generate_narrative(archetype, tone),
            cancel_event,
        )
        image = await self._run_stage(
            CreationStage.PORTRAIT,
            lambda: self.portrait.generate_image(archetype, narrative.appearance),
            cancel_event,
        )
        image_uri = await self._run_stage(
            CreationStage.PUBLISH_IMAGE,
            lambda: self.publisher.publish(image, self.config.image_filename),
            cancel_event,
        )

        self._check_cancelled(CreationStage.BUILD_METADATA, cancel_event)
        metadata = build_metadata(narrative, archetype, attributes, image_uri, level=1)

        metadata_uri = await self._run_stage(
            CreationStage.PUBLISH_METADATA,
            lambda: self.publisher.publish(metadata, f"{narrative.name}_metadata"),
            cancel_event,
        )
        artifact = CreationArtifact(narrative=narrative, image_uri=image_uri, metadata_uri=metadata_uri)
        return attributes, artifact, metadata

    async def _index_mint(self, token_id: int, owner: str) -> None:
        if self.owner_index is None:
            return
        try:
            await self.owner_index.record_mint(token_id, owner)
        except SQLAlchemyError as e:
            # The token exists on the ledger; OwnerIndex.rebuild() restores the entry.
            logger.error("Owner index update failed", token_id=token_id, error=str(e))

    async def create_character(
        self,
        owner_address: str,
        archetype: CharacterArchetype | str,
        *,
        tone: ToneOptions | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> CreationResult:
        """
        Create and mint one character.

        Args:
            owner_address: Account that will own the token
            archetype: Character archetype (enum or case-insensitive name)
            tone: Narrative options (configured defaults when None)
            cancel_event: Set to abandon the saga before its next stage

        Returns:
            CreationResult with token id, transaction reference, record and artifacts

        Raises:
            ValidationFailure: Invalid owner or archetype (before any stage runs)
            GenerationFailure: Narrative or portrait generation failed
            PublishFailure: Publishing the portrait or metadata failed
            LedgerFailure: The mint was rejected or timed out
            CreationCancelled: cancel_event was set
        """
        owner = self._validate_owner(owner_address)
        parsed_archetype = self._validate_archetype(archetype)
        saga_id = uuid.uuid4().hex
        bind_request_context(saga_id=saga_id, owner=owner, saga="create")
        try:
            logger.info("Creation saga started", archetype=parsed_archetype.value)
            attributes, artifact, metadata = await self._produce_artifact(
                parsed_archetype, tone or self.default_tone(), cancel_event
            )
            receipt = await self._run_stage(
                CreationStage.MINT,
                lambda: self.ledger.mint(
                    MintOperation(
                        owner=owner,
                        archetype=parsed_archetype,
                        attributes=attributes,
                        metadata_uri=artifact.metadata_uri,
                    )
                ),
                cancel_event,
            )

            record = CharacterRecord(
                token_id=receipt.token_id,
                owner=owner,
                archetype=parsed_archetype,
                attributes=attributes,
                experience=0,
                level=1,
                season_id=receipt.season_id,
                evolved=False,
            )
            await self._index_mint(receipt.token_id, owner)
            logger.info(
                "Creation saga completed",
                token_id=receipt.token_id,
                tx_ref=receipt.tx_ref,
                season_id=receipt.season_id,
            )
            return CreationResult(
                token_id=receipt.token_id,
                tx_ref=receipt.tx_ref,
                tx_link=receipt.tx_link,
                record=record,
                artifact=artifact,
                metadata=metadata,
            )
        finally:
            unbind_request_context(*_SAGA_CONTEXT_KEYS)

    async def evolve_character(
        self,
        token_id: int,
        *,
        tone: ToneOptions | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> EvolutionResult:
        """
        Retire an eligible character and mint its level-1 successor.

        Eligibility is checked before any generation runs.

        Raises:
            NotFoundFailure: The token does not exist
            ValidationFailure: already_evolved or evolution_not_eligible
            GenerationFailure, PublishFailure, LedgerFailure, CreationCancelled: as for creation
        """
        saga_id = uuid.uuid4().hex
        bind_request_context(saga_id=saga_id, token_id=token_id, saga="evolve")
        try:
            record = await self.ledger.read_record(token_id)
            self.engine.require_evolvable(record)
            logger.info("Evolution saga started", level=record.level, archetype=record.archetype.value)

            attributes, artifact, _metadata = await self._produce_artifact(
                record.archetype, tone or self.default_tone(), cancel_event
            )
            async def _evolve() -> tuple[CharacterRecord, CharacterRecord, str]:
                receipt = await self.ledger.evolve(
                    EvolveOperation(token_id=token_id, attributes=attributes, metadata_uri=artifact.metadata_uri)
                )
                # The token may have changed hands during generation; the ledger has the committed owner.
                retired = await self.ledger.read_record(token_id)
                successor = await self.ledger.read_record(receipt.new_token_id)
                return retired, successor, receipt.tx_ref

            retired, successor, tx_ref = await self._run_stage(CreationStage.EVOLVE, _evolve, cancel_event)

            await self._index_mint(successor.token_id, successor.owner)
            logger.info("Evolution saga completed", new_token_id=successor.token_id, tx_ref=tx_ref)
            return EvolutionResult(retired=retired, successor=successor, artifact=artifact, tx_ref=tx_ref)
        finally:
            unbind_request_context(*_SAGA_CONTEXT_KEYS)

    @staticmethod
    def _validate_owner(owner_address: Any) -> str:
        if not isinstance(owner_address, str) or not owner_address.strip():
            log_and_raise(
                ValidationFailure,
                "Owner address must be a non-empty string",
                create_error_context(operation="create_character"),
                user_friendly="A valid owner address is required",
                field="owner_address",
                value=owner_address,
                reason=ValidationReason.INVALID_ADDRESS,
            )
        return owner_address.strip()

    @staticmethod
    def _validate_archetype(archetype: Any) -> CharacterArchetype:
        try:
            return CharacterArchetype.parse(archetype)
        except ValueError as e:
            log_and_raise(
                ValidationFailure,
                str(e),
                create_error_context(operation="create_character"),
                user_friendly="Unknown character class",
                field="archetype",
                value=archetype,
                reason=ValidationReason.INVALID_ARCHETYPE,
            )
