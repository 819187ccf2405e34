"""
ApplicationContainer: builds collaborators and services from an AppConfig.

The backends are chosen by configuration: static or OpenAI generation,
in-memory or Pinata content storage, the in-memory reference ledger or the
custodial signing service, and scan or index registry mode.
"""

import random
from typing import Any

from anyio import Lock

from .collaborators.content_store import InMemoryContentPublisher, PinataContentPublisher
from .collaborators.ledger import CustodialLedgerClient, InMemoryLedger
from .collaborators.openai_generation import (
    OpenAINarrativeGenerator,
    OpenAIPortraitGenerator,
    StaticNarrativeGenerator,
    StaticPortraitGenerator,
)
from .collaborators.protocols import ContentPublisher, LedgerClient, NarrativeGenerator, PortraitGenerator
from .config import AppConfig, get_config
from .exceptions import ConfigurationFailure
from .game.character_registry import CharacterRegistry
from .game.creation_orchestrator import CreationOrchestrator
from .game.gameplay_service import GameplayService
from .game.level_service import LevelUpHook, ProgressionService
from .game.progression_engine import ProgressionEngine
from .game.season import SeasonClock
from .game.stats_roller import StatRoller
from .persistence.owner_index import OwnerIndex
from .structured_logging.enhanced_logging_config import get_logger, setup_enhanced_logging

logger = get_logger(__name__)


class ApplicationContainer:
    """
    Dependency container for MintForge.

    Construct with from_config(), then await initialize() before use so the
    owner index (in index mode) is rebuilt from the ledger.
    """

    def __init__(self, config: AppConfig) -> None:
        self.config = config
        self.engine: ProgressionEngine | None = None
        self.roller: StatRoller | None = None
        self.narrative: NarrativeGenerator | None = None
        self.portrait: PortraitGenerator | None = None
        self.publisher: ContentPublisher | None = None
        self.ledger: LedgerClient | None = None
        self.owner_index: OwnerIndex | None = None
        self.season_clock: SeasonClock | None = None
        self.orchestrator: CreationOrchestrator | None = None
        self.progression: ProgressionService | None = None
        self.registry: CharacterRegistry | None = None
        self.gameplay: GameplayService | None = None

        self._initialized = False
        self._initialization_lock = Lock()

    @classmethod
    def from_config(
        cls,
        config: AppConfig | None = None,
        *,
        rng: random.Random | None = None,
        level_up_hook: LevelUpHook | None = None,
        configure_logging: bool = True,
    ) -> "ApplicationContainer":
        """
        Wire every collaborator and service from configuration.

        Args:
            config: Application configuration (get_config() when None)
            rng: Shared random source for rolling and combat (seed it for reproducible runs)
            level_up_hook: Optional async (token_id, new_level) hook for the progression service
            configure_logging: Configure structlog from config.logging
        """
        config = config or get_config()
        if configure_logging:
            setup_enhanced_logging(config.logging)

        container = cls(config)
        progression = config.progression
        container.engine = ProgressionEngine(
            xp_per_level=progression.xp_per_level,
            evolution_threshold=progression.evolution_threshold,
            evolution_power_multiplier=progression.evolution_power_multiplier,
        )
        container.roller = StatRoller(rng=rng, floor=progression.attribute_floor)
        container.narrative, container.portrait = cls._build_generators(config, rng)
        container.publisher = cls._build_publisher(config)
        container.ledger = cls._build_ledger(config, container.engine)
        if config.registry.mode == "index":
            container.owner_index = OwnerIndex(config.registry.index_database_url)

        container.season_clock = SeasonClock(container.ledger)
        container.orchestrator = CreationOrchestrator(
            roller=container.roller,
            narrative=container.narrative,
            portrait=container.portrait,
            publisher=container.publisher,
            ledger=container.ledger,
            engine=container.engine,
            config=config.creation,
            owner_index=container.owner_index,
        )
        container.progression = ProgressionService(
            container.ledger,
            engine=container.engine,
            level_up_hook=level_up_hook,
            season_clock=container.season_clock,
            owner_index=container.owner_index,
        )
        container.registry = CharacterRegistry(
            container.ledger,
            engine=container.engine,
            owner_index=container.owner_index,
            default_page_size=config.registry.default_page_size,
        )
        container.gameplay = GameplayService(
            container.ledger, container.progression, container.narrative, rng=rng
        )
        logger.info(
            "ApplicationContainer wired",
            generation=config.generation.backend,
            storage=config.storage.backend,
            ledger=config.ledger.backend,
            registry=config.registry.mode,
        )
        return container

    @staticmethod
    def _build_generators(
        config: AppConfig, rng: random.Random | None
    ) -> tuple[NarrativeGenerator, PortraitGenerator]:
        generation = config.generation
        if generation.backend == "static":
            return StaticNarrativeGenerator(rng=rng), StaticPortraitGenerator()
        if not generation.api_key:
            raise ConfigurationFailure("OpenAI generation needs an API key", config_key="GENERATION_API_KEY")
        narrative = OpenAINarrativeGenerator(
            api_key=generation.api_key,
            model=generation.text_model,
            temperature=generation.temperature,
            timeout=generation.timeout_seconds,
        )
        portrait = OpenAIPortraitGenerator(
            api_key=generation.api_key,
            model=generation.image_model,
            size=generation.image_size,
            timeout=generation.timeout_seconds,
        )
        return narrative, portrait

    @staticmethod
    def _build_publisher(config: AppConfig) -> ContentPublisher:
        storage = config.storage
        if storage.backend == "memory":
            return InMemoryContentPublisher()
        if not (storage.pinata_api_key and storage.pinata_api_secret):
            raise ConfigurationFailure("Pinata storage needs an API key and secret", config_key="PINATA_API_KEY")
        return PinataContentPublisher(
            api_key=storage.pinata_api_key,
            api_secret=storage.pinata_api_secret,
            base_url=storage.pinata_base_url,
            gateway_url=storage.gateway_url,
            timeout=storage.timeout_seconds,
        )

    @staticmethod
    def _build_ledger(config: AppConfig, engine: ProgressionEngine) -> LedgerClient:
        ledger = config.ledger
        if ledger.backend == "memory":
            return InMemoryLedger(engine=engine, initial_season=ledger.initial_season)
        return CustodialLedgerClient(
            base_url=ledger.service_url,
            contract_address=ledger.contract_address,
            api_key=ledger.api_key,
            network_id=ledger.network_id,
            timeout=ledger.timeout_seconds,
        )

    async def initialize(self) -> None:
        """Rebuild the owner index from the ledger when running in index mode."""
        async with self._initialization_lock:
            if self._initialized:
                logger.warning("Container already initialized - skipping re-initialization")
                return
            if self.owner_index is not None and self.ledger is not None:
                await self.owner_index.rebuild(self.ledger)
            self._initialized = True
            logger.info("ApplicationContainer initialization complete")

    async def shutdown(self) -> None:
        """Close HTTP clients and the index database."""
        closables: list[Any] = [self.publisher, self.ledger]
        for component in closables:
            aclose = getattr(component, "aclose", None)
            if aclose is not None:
                await aclose()
        if self.owner_index is not None:
            await self.owner_index.close()
        self._initialized = False
        logger.info("ApplicationContainer shutdown complete")
