"""
Tests for CreationOrchestrator: the creation and evolution sagas.
"""

# pylint: disable=redefined-outer-name
# Justification: pytest fixtures redefine names

import asyncio
import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from mintforge.collaborators.openai_generation import StaticNarrativeGenerator, StaticPortraitGenerator
from mintforge.config import CreationConfig
from mintforge.exceptions import (
    CreationCancelled,
    GenerationFailure,
    LedgerFailure,
    PublishFailure,
    ValidationFailure,
)
from mintforge.game.character_registry import CharacterRegistry
from mintforge.game.creation_orchestrator import CreationOrchestrator, build_metadata
from mintforge.game.level_service import ProgressionService
from mintforge.models import (
    AdvanceSeasonOperation,
    AttributeSet,
    CharacterArchetype,
    GrantExperienceOperation,
    NarrativeProfile,
)
from mintforge.persistence.owner_index import OwnerIndex


@pytest.fixture
def spy_ledger(ledger):
    """The in-memory ledger with its writes wrapped in mocks."""
    ledger.mint = AsyncMock(wraps=ledger.mint)
    ledger.evolve = AsyncMock(wraps=ledger.evolve)
    return ledger


def build(roller, publisher, ledger, engine, **overrides):
    parts = {
        "roller": roller,
        "narrative": StaticNarrativeGenerator(),
        "portrait": StaticPortraitGenerator(),
        "publisher": publisher,
        "ledger": ledger,
        "engine": engine,
        "config": CreationConfig(),
    }
    parts.update(overrides)
    return CreationOrchestrator(**parts)


class TestCreateCharacter:
    @pytest.mark.asyncio
    async def test_warrior_end_to_end(self, orchestrator, publisher):
        result = await orchestrator.create_character("0xA", "warrior")

        record = result.record
        assert record.archetype is CharacterArchetype.WARRIOR
        assert record.level == 1
        assert record.experience == 0
        assert record.evolved is False
        assert record.owner == "0xA"
        assert all(10 <= value <= 16 for value in record.attributes.as_array())
        assert result.token_id == 1
        assert result.tx_ref.startswith("0x")
        assert result.artifact.image_uri.startswith("ipfs://")
        assert result.artifact.metadata_uri.startswith("ipfs://")

        image = await publisher.fetch(result.artifact.image_uri)
        assert image.startswith(b"\x89PNG")
        metadata = json.loads(await publisher.fetch(result.artifact.metadata_uri))
        assert metadata == result.metadata
        assert metadata["image"] == result.artifact.image_uri

    @pytest.mark.asyncio
    async def test_record_matches_ledger(self, orchestrator, ledger):
        result = await orchestrator.create_character("0xA", CharacterArchetype.MAGE)
        assert await ledger.read_record(result.token_id) == result.record

    @pytest.mark.asyncio
    async def test_metadata_traits(self, orchestrator):
        result = await orchestrator.create_character("0xA", "rogue")
        traits = {trait["trait_type"]: trait["value"] for trait in result.metadata["attributes"]}
        assert traits["Class"] == "rogue"
        assert traits["Level"] == 1
        assert traits["Dexterity"] == result.record.attributes.dexterity
        assert "Personality" in traits
        assert result.metadata["name"] == result.artifact.narrative.name
        assert result.metadata["description"] == result.artifact.narrative.backstory

    @pytest.mark.asyncio
    @pytest.mark.parametrize("owner", ["", "   ", None, 42])
    async def test_invalid_owner_rejected_before_any_stage(self, roller, publisher, spy_ledger, engine, owner):
        narrative = MagicMock()
        narrative.generate_narrative = AsyncMock()
        orchestrator = build(roller, publisher, spy_ledger, engine, narrative=narrative)
        with pytest.raises(ValidationFailure) as exc_info:
            await orchestrator.create_character(owner, "warrior")
        assert exc_info.value.reason == "invalid_address"
        narrative.generate_narrative.assert_not_called()
        spy_ledger.mint.assert_not_called()

    @pytest.mark.asyncio
    async def test_invalid_archetype_rejected(self, orchestrator):
        with pytest.raises(ValidationFailure) as exc_info:
            await orchestrator.create_character("0xA", "necromancer")
        assert exc_info.value.reason == "invalid_archetype"
        assert exc_info.value.code == "validation_failed"

    @pytest.mark.asyncio
    async def test_archetype_parse_is_lenient(self, orchestrator):
        result = await orchestrator.create_character("0xA", "  Cleric ")
        assert result.record.archetype is CharacterArchetype.CLERIC

    @pytest.mark.asyncio
    async def test_portrait_failure_never_mints(self, roller, publisher, spy_ledger, engine):
        portrait = MagicMock()
        portrait.generate_image = AsyncMock(side_effect=GenerationFailure("image service down"))
        orchestrator = build(roller, publisher, spy_ledger, engine, portrait=portrait)

        with pytest.raises(GenerationFailure) as exc_info:
            await orchestrator.create_character("0xA", "warrior")

        assert exc_info.value.stage == "portrait"
        assert exc_info.value.details["stage"] == "portrait"
        assert exc_info.value.code == "generation_failed"
        spy_ledger.mint.assert_not_called()
        assert await spy_ledger.read_total_supply() == 0
        assert publisher.pinned == {}

    @pytest.mark.asyncio
    async def test_foreign_exception_wrapped_as_stage_failure(self, roller, publisher, spy_ledger, engine):
        portrait = MagicMock()
        portrait.generate_image = AsyncMock(side_effect=RuntimeError("boom"))
        orchestrator = build(roller, publisher, spy_ledger, engine, portrait=portrait)

        with pytest.raises(GenerationFailure) as exc_info:
            await orchestrator.create_character("0xA", "warrior")
        assert exc_info.value.stage == "portrait"
        spy_ledger.mint.assert_not_called()

    @pytest.mark.asyncio
    async def test_narrative_failure_tagged(self, roller, publisher, spy_ledger, engine):
        narrative = MagicMock()
        narrative.generate_narrative = AsyncMock(side_effect=GenerationFailure("bad json"))
        orchestrator = build(roller, publisher, spy_ledger, engine, narrative=narrative)
        with pytest.raises(GenerationFailure) as exc_info:
            await orchestrator.create_character("0xA", "bard")
        assert exc_info.value.stage == "narrative"

    @pytest.mark.asyncio
    async def test_metadata_publish_failure_leaves_image_orphaned(self, roller, spy_ledger, engine, publisher):
        calls = []
        original_publish = publisher.publish

        async def publish(content, display_name):
            calls.append(display_name)
            if isinstance(content, dict):
                raise PublishFailure("pinning service rejected document")
            return await original_publish(content, display_name)

        publisher.publish = publish
        orchestrator = build(roller, publisher, spy_ledger, engine)

        with pytest.raises(PublishFailure) as exc_info:
            await orchestrator.create_character("0xA", "warrior")

        assert exc_info.value.stage == "publish_metadata"
        assert calls[0] == "character.png"
        assert calls[1].endswith("_metadata")
        assert len(publisher.pinned) == 1
        spy_ledger.mint.assert_not_called()

    @pytest.mark.asyncio
    async def test_mint_failure_tagged(self, roller, publisher, ledger, engine):
        ledger.mint = AsyncMock(side_effect=LedgerFailure("insufficient funds", method="mint"))
        orchestrator = build(roller, publisher, ledger, engine)
        with pytest.raises(LedgerFailure) as exc_info:
            await orchestrator.create_character("0xA", "warrior")
        assert exc_info.value.stage == "mint"
        assert exc_info.value.details["method"] == "mint"

    @pytest.mark.asyncio
    async def test_stage_timeout(self, roller, publisher, spy_ledger, engine):
        async def slow_narrative(archetype, options):
            await asyncio.sleep(5)

        narrative = MagicMock()
        narrative.generate_narrative = slow_narrative
        config = CreationConfig(narrative_timeout_seconds=0.01)
        orchestrator = build(roller, publisher, spy_ledger, engine, narrative=narrative, config=config)

        with pytest.raises(GenerationFailure) as exc_info:
            await orchestrator.create_character("0xA", "warrior")
        assert exc_info.value.stage == "narrative"
        assert exc_info.value.details["timeout"] is True
        spy_ledger.mint.assert_not_called()

    @pytest.mark.asyncio
    async def test_cancel_before_start(self, orchestrator, ledger):
        cancel = asyncio.Event()
        cancel.set()
        with pytest.raises(CreationCancelled) as exc_info:
            await orchestrator.create_character("0xA", "warrior", cancel_event=cancel)
        assert exc_info.value.code == "creation_cancelled"
        assert exc_info.value.stage == "roll_attributes"
        assert await ledger.read_total_supply() == 0

    @pytest.mark.asyncio
    async def test_cancel_between_stages_keeps_committed_stage(self, roller, publisher, spy_ledger, engine):
        cancel = asyncio.Event()
        real_portrait = StaticPortraitGenerator()

        async def portrait_then_cancel(archetype, description):
            image = await real_portrait.generate_image(archetype, description)
            cancel.set()
            return image

        portrait = MagicMock()
        portrait.generate_image = portrait_then_cancel
        orchestrator = build(roller, publisher, spy_ledger, engine, portrait=portrait)

        with pytest.raises(CreationCancelled) as exc_info:
            await orchestrator.create_character("0xA", "warrior", cancel_event=cancel)
        assert exc_info.value.stage == "publish_image"
        assert publisher.pinned == {}
        spy_ledger.mint.assert_not_called()

    @pytest.mark.asyncio
    async def test_retry_produces_new_artifacts(self, orchestrator):
        first = await orchestrator.create_character("0xA", "warrior")
        second = await orchestrator.create_character("0xA", "warrior")
        assert second.token_id == first.token_id + 1

    @pytest.mark.asyncio
    async def test_concurrent_sagas_get_distinct_ids(self, orchestrator, ledger):
        results = await asyncio.gather(*(orchestrator.create_character(f"0x{i}", "mage") for i in range(8)))
        assert sorted(result.token_id for result in results) == list(range(1, 9))
        assert await ledger.read_total_supply() == 8

    @pytest.mark.asyncio
    async def test_mint_recorded_in_owner_index(self, roller, publisher, ledger, engine):
        index = OwnerIndex()
        orchestrator = build(roller, publisher, ledger, engine, owner_index=index)
        result = await orchestrator.create_character("0xAbC", "warrior")
        assert await index.token_ids_for("0xabc") == [result.token_id]
        await index.close()

    @pytest.mark.asyncio
    async def test_unusable_metadata_uri_fails_mint_stage(self, roller, spy_ledger, engine):
        publisher = MagicMock()
        publisher.publish = AsyncMock(side_effect=["ipfs://image", ""])
        orchestrator = build(roller, publisher, spy_ledger, engine)

        with pytest.raises(LedgerFailure) as exc_info:
            await orchestrator.create_character("0xA", "warrior")

        assert exc_info.value.stage == "mint"
        assert exc_info.value.code == "ledger_failed"
        spy_ledger.mint.assert_not_called()

    @pytest.mark.asyncio
    async def test_tone_options_forwarded(self, roller, publisher, ledger, engine):
        narrative = MagicMock()
        narrative.generate_narrative = AsyncMock(
            return_value=NarrativeProfile(name="Brann", backstory="A tale.", appearance="Tall")
        )
        config = CreationConfig(tone="tragic", length="long", include_personality=False)
        orchestrator = build(roller, publisher, ledger, engine, narrative=narrative, config=config)
        await orchestrator.create_character("0xA", "warrior")
        options = narrative.generate_narrative.await_args.args[1]
        assert options.tone == "tragic"
        assert options.length == "long"
        assert options.include_personality is False


class TestEvolveCharacter:
    async def _level_up(self, ledger, token_id, amount=4000):
        await ledger.grant_experience(GrantExperienceOperation(token_id=token_id, amount=amount))

    @pytest.mark.asyncio
    async def test_evolve_eligible_character(self, orchestrator, ledger):
        created = await orchestrator.create_character("0xA", "warrior")
        await self._level_up(ledger, created.token_id)

        result = await orchestrator.evolve_character(created.token_id)

        assert result.retired.token_id == created.token_id
        assert result.retired.evolved is True
        assert result.successor.token_id == created.token_id + 1
        assert result.successor.level == 1
        assert result.successor.experience == 0
        assert result.successor.evolved is False
        assert result.successor.owner == "0xA"
        assert result.successor.archetype is CharacterArchetype.WARRIOR

        stored_retired = await ledger.read_record(created.token_id)
        stored_successor = await ledger.read_record(result.successor.token_id)
        assert stored_retired.evolved is True
        assert stored_successor == result.successor

    @pytest.mark.asyncio
    async def test_evolve_under_level_rejected_before_generation(self, roller, publisher, spy_ledger, engine, mint):
        receipt = await mint("0xA")
        narrative = MagicMock()
        narrative.generate_narrative = AsyncMock()
        orchestrator = build(roller, publisher, spy_ledger, engine, narrative=narrative)

        with pytest.raises(ValidationFailure) as exc_info:
            await orchestrator.evolve_character(receipt.token_id)

        assert exc_info.value.reason == "evolution_not_eligible"
        narrative.generate_narrative.assert_not_called()
        spy_ledger.evolve.assert_not_called()

    @pytest.mark.asyncio
    async def test_evolve_twice_rejected(self, orchestrator, ledger):
        created = await orchestrator.create_character("0xA", "warrior")
        await self._level_up(ledger, created.token_id)
        await orchestrator.evolve_character(created.token_id)

        with pytest.raises(ValidationFailure) as exc_info:
            await orchestrator.evolve_character(created.token_id)
        assert exc_info.value.reason == "already_evolved"

    @pytest.mark.asyncio
    async def test_successor_minted_in_current_season(self, orchestrator, ledger):
        created = await orchestrator.create_character("0xA", "warrior")
        await self._level_up(ledger, created.token_id)

        await ledger.advance_season(AdvanceSeasonOperation())
        result = await orchestrator.evolve_character(created.token_id)
        assert result.successor.season_id == 2
        assert result.retired.season_id == 1

    @pytest.mark.asyncio
    async def test_evolve_ledger_failure_tagged(self, roller, publisher, ledger, engine, mint):
        receipt = await mint("0xA")
        await self._level_up(ledger, receipt.token_id)
        ledger.evolve = AsyncMock(side_effect=LedgerFailure("reverted", method="evolve"))
        orchestrator = build(roller, publisher, ledger, engine)

        with pytest.raises(LedgerFailure) as exc_info:
            await orchestrator.evolve_character(receipt.token_id)
        assert exc_info.value.stage == "evolve"

    @pytest.mark.asyncio
    async def test_successor_follows_transfer_during_generation(self, roller, publisher, ledger, engine, mint):
        receipt = await mint("0xA")
        await self._level_up(ledger, receipt.token_id)
        index = OwnerIndex()
        await index.rebuild(ledger)
        progression = ProgressionService(ledger, engine=engine, owner_index=index)

        class TransferringNarrative(StaticNarrativeGenerator):
            async def generate_narrative(self, archetype, options):
                await progression.transfer(receipt.token_id, "0xA", "0xB")
                return await super().generate_narrative(archetype, options)

        orchestrator = build(roller, publisher, ledger, engine, narrative=TransferringNarrative(), owner_index=index)
        result = await orchestrator.evolve_character(receipt.token_id)

        assert result.successor.owner == "0xB"
        assert result.retired.owner == "0xB"
        assert result.successor == await ledger.read_record(result.successor.token_id)

        scanned, _ = await CharacterRegistry(ledger, engine=engine).list_by_owner("0xB")
        indexed, _ = await CharacterRegistry(ledger, engine=engine, owner_index=index).list_by_owner("0xB")
        assert [view.token_id for view in scanned] == [receipt.token_id, result.successor.token_id]
        assert indexed == scanned
        await index.close()


def test_build_metadata_defaults_personality():
    narrative = NarrativeProfile(name="Vex", backstory="Grew up on the docks.", appearance="Hooded")
    attributes = AttributeSet(strength=10, dexterity=16, constitution=12, intelligence=12, wisdom=10, charisma=14)
    metadata = build_metadata(narrative, CharacterArchetype.ROGUE, attributes, "ipfs://img")

    assert metadata["image"] == "ipfs://img"
    trait_types = [trait["trait_type"] for trait in metadata["attributes"]]
    assert trait_types == [
        "Class",
        "Level",
        "Strength",
        "Dexterity",
        "Constitution",
        "Intelligence",
        "Wisdom",
        "Charisma",
        "Personality",
    ]
    assert metadata["attributes"][-1]["value"] == "Unknown"
