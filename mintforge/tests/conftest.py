"""
Shared fixtures for the MintForge test suite.
"""

import os
import random

import pytest

os.environ.setdefault("LOGGING_ENVIRONMENT", "unit_test")

# pylint: disable=wrong-import-position  # Reason: environment must be set before config is imported
from mintforge.collaborators.content_store import InMemoryContentPublisher
from mintforge.collaborators.ledger import InMemoryLedger
from mintforge.collaborators.openai_generation import StaticNarrativeGenerator, StaticPortraitGenerator
from mintforge.config import CreationConfig
from mintforge.game.creation_orchestrator import CreationOrchestrator
from mintforge.game.progression_engine import ProgressionEngine
from mintforge.game.stats_roller import StatRoller
from mintforge.models import AttributeSet, CharacterArchetype, CharacterRecord, MintOperation
from mintforge.structured_logging.logging_context import clear_request_context

# pylint: disable=redefined-outer-name  # Reason: pytest fixture parameter names must match fixture names


@pytest.fixture(autouse=True)
def _clear_logging_context():
    """Keep structlog contextvars from leaking between tests."""
    clear_request_context()
    yield
    clear_request_context()


@pytest.fixture
def rng():
    return random.Random(1234)


@pytest.fixture
def engine():
    return ProgressionEngine()


@pytest.fixture
def roller(rng):
    return StatRoller(rng=rng)


@pytest.fixture
def ledger(engine):
    return InMemoryLedger(engine=engine)


@pytest.fixture
def publisher():
    return InMemoryContentPublisher()


@pytest.fixture
def creation_config():
    return CreationConfig()


@pytest.fixture
def orchestrator(roller, rng, publisher, ledger, engine, creation_config):
    """Orchestrator wired to the in-memory collaborators."""
    return CreationOrchestrator(
        roller=roller,
        narrative=StaticNarrativeGenerator(rng=rng),
        portrait=StaticPortraitGenerator(),
        publisher=publisher,
        ledger=ledger,
        engine=engine,
        config=creation_config,
    )


@pytest.fixture
def make_record():
    """Factory for CharacterRecord snapshots with sensible defaults."""

    def _make(**overrides) -> CharacterRecord:
        values = {
            "token_id": 1,
            "owner": "0xA",
            "archetype": CharacterArchetype.WARRIOR,
            "attributes": AttributeSet(
                strength=14, dexterity=11, constitution=12, intelligence=10, wisdom=10, charisma=10
            ),
            "experience": 0,
            "level": 1,
            "season_id": 1,
            "evolved": False,
        }
        values.update(overrides)
        return CharacterRecord(**values)

    return _make


@pytest.fixture
def mint(ledger):
    """Mint a character straight through the ledger, bypassing the saga."""

    async def _mint(owner: str, archetype: CharacterArchetype = CharacterArchetype.WARRIOR):
        attributes = AttributeSet(strength=12, dexterity=12, constitution=12, intelligence=12, wisdom=12, charisma=12)
        return await ledger.mint(
            MintOperation(owner=owner, archetype=archetype, attributes=attributes, metadata_uri="ipfs://meta")
        )

    return _mint
