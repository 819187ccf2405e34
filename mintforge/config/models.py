"""
Pydantic-based configuration models for MintForge.

Each concern has its own BaseSettings model with an environment prefix;
AppConfig aggregates them. Obtain the configuration through get_config().
"""

from typing import Literal

from pydantic import AliasChoices, Field, field_validator, model_validator
from pydantic_settings import BaseSettings

from ..structured_logging.enhanced_logging_config import get_logger

logger = get_logger(__name__)


class ProgressionConfig(BaseSettings):
    """Experience, level and evolution constants."""

    xp_per_level: int = Field(default=1000, description="Experience needed per level")
    evolution_threshold: int = Field(default=5, description="Minimum level to evolve")
    evolution_power_multiplier: int = Field(default=2, description="Power multiplier for evolved records")
    attribute_floor: int = Field(default=10, description="Global minimum for every rolled attribute")

    @field_validator("xp_per_level", "evolution_threshold", "evolution_power_multiplier")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        """Progression constants must be at least 1."""
        if v < 1:
            logger.error("Invalid progression constant", value=v)
            raise ValueError("Progression constants must be at least 1")
        return v

    @field_validator("attribute_floor")
    @classmethod
    def validate_floor(cls, v: int) -> int:
        """The floor must fit the unsigned 8-bit attribute field."""
        if not 0 <= v <= 255:
            raise ValueError("attribute_floor must be between 0 and 255")
        return v

    model_config = {"env_prefix": "PROGRESSION_", "case_sensitive": False, "extra": "ignore"}


class CreationConfig(BaseSettings):
    """Creation saga options: narrative tone and per-stage timeouts."""

    tone: Literal["heroic", "mysterious", "tragic", "comedic"] = Field(default="heroic")
    length: Literal["short", "medium", "long"] = Field(default="short")
    include_personality: bool = Field(default=True)
    image_filename: str = Field(default="character.png", description="Display name for pinned portraits")

    narrative_timeout_seconds: float = Field(default=60.0)
    portrait_timeout_seconds: float = Field(default=120.0)
    publish_timeout_seconds: float = Field(default=60.0)
    ledger_timeout_seconds: float = Field(default=180.0)

    @field_validator(
        "narrative_timeout_seconds",
        "portrait_timeout_seconds",
        "publish_timeout_seconds",
        "ledger_timeout_seconds",
    )
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        """Timeouts must be positive."""
        if v <= 0:
            raise ValueError("Stage timeouts must be positive")
        return v

    model_config = {"env_prefix": "CREATION_", "case_sensitive": False, "extra": "ignore"}


class GenerationConfig(BaseSettings):
    """Narrative and portrait generation."""

    backend: Literal["static", "openai"] = Field(default="static")
    api_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices("GENERATION_API_KEY", "OPENAI_API_KEY"),
        description="OpenAI API key (required for the openai backend)",
    )
    text_model: str = Field(default="gpt-4")
    temperature: float = Field(default=0.7)
    image_model: str = Field(default="dall-e-2")
    image_size: Literal["256x256", "512x512", "1024x1024"] = Field(default="1024x1024")
    timeout_seconds: float = Field(default=60.0)

    @field_validator("temperature")
    @classmethod
    def validate_temperature(cls, v: float) -> float:
        """Temperature must be in the range the API accepts."""
        if not 0.0 <= v <= 2.0:
            raise ValueError("temperature must be between 0.0 and 2.0")
        return v

    @model_validator(mode="after")
    def validate_credentials(self) -> "GenerationConfig":
        """The openai backend needs an API key."""
        if self.backend == "openai" and not self.api_key:
            raise ValueError("GENERATION_API_KEY (or OPENAI_API_KEY) must be set for the openai backend")
        return self

    model_config = {"env_prefix": "GENERATION_", "case_sensitive": False, "extra": "ignore", "populate_by_name": True}


class StorageConfig(BaseSettings):
    """Content-addressed storage."""

    backend: Literal["memory", "pinata"] = Field(default="memory")
    pinata_api_key: str | None = Field(
        default=None, validation_alias=AliasChoices("STORAGE_PINATA_API_KEY", "PINATA_API_KEY")
    )
    pinata_api_secret: str | None = Field(
        default=None, validation_alias=AliasChoices("STORAGE_PINATA_API_SECRET", "PINATA_API_SECRET")
    )
    pinata_base_url: str = Field(default="https://api.pinata.cloud")
    gateway_url: str = Field(default="https://ipfs.io/ipfs")
    timeout_seconds: float = Field(default=60.0)

    @model_validator(mode="after")
    def validate_credentials(self) -> "StorageConfig":
        """The pinata backend needs both credentials."""
        if self.backend == "pinata" and not (self.pinata_api_key and self.pinata_api_secret):
            raise ValueError("PINATA_API_KEY and PINATA_API_SECRET must be set for the pinata backend")
        return self

    model_config = {"env_prefix": "STORAGE_", "case_sensitive": False, "extra": "ignore", "populate_by_name": True}


class LedgerConfig(BaseSettings):
    """Ledger access through the custodial signing service."""

    backend: Literal["memory", "custodial"] = Field(default="memory")
    service_url: str = Field(default="http://localhost:8545")
    api_key: str | None = Field(default=None)
    contract_address: str = Field(default="0x0000000000000000000000000000000000000000")
    network_id: str = Field(default="base-sepolia")
    timeout_seconds: float = Field(default=180.0)
    initial_season: int = Field(default=1, description="Season of the in-memory ledger at genesis")

    @field_validator("initial_season")
    @classmethod
    def validate_season(cls, v: int) -> int:
        """Seasons start at 1."""
        if v < 1:
            raise ValueError("initial_season must be at least 1")
        return v

    @field_validator("contract_address")
    @classmethod
    def validate_contract_address(cls, v: str) -> str:
        """Contract addresses are 0x-prefixed."""
        if not v.startswith("0x"):
            raise ValueError("contract_address must start with '0x'")
        return v

    model_config = {"env_prefix": "LEDGER_", "case_sensitive": False, "extra": "ignore"}


class RegistryConfig(BaseSettings):
    """Read path: full-range scan or owner index."""

    mode: Literal["scan", "index"] = Field(default="scan")
    index_database_url: str = Field(default="sqlite+aiosqlite:///:memory:", description="Async SQLAlchemy URL")
    default_page_size: int = Field(default=10)

    @field_validator("default_page_size")
    @classmethod
    def validate_page_size(cls, v: int) -> int:
        """Page size must be at least 1."""
        if v < 1:
            raise ValueError("default_page_size must be at least 1")
        return v

    model_config = {"env_prefix": "REGISTRY_", "case_sensitive": False, "extra": "ignore"}


class LoggingConfig(BaseSettings):
    """Logging configuration."""

    environment: str | None = Field(default=None, description="Auto-detected when unset")
    level: str = Field(default="INFO")
    format: Literal["json", "key_value"] = Field(default="key_value")

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        """Normalize and validate the log level."""
        normalized = v.upper()
        if normalized not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Invalid log level: {v}")
        return normalized

    model_config = {"env_prefix": "LOGGING_", "case_sensitive": False, "extra": "ignore"}


class AppConfig(BaseSettings):
    """
    Composite application configuration.

    Aggregates all other configs. Access via get_config().
    """

    progression: ProgressionConfig = Field(default_factory=ProgressionConfig)
    creation: CreationConfig = Field(default_factory=CreationConfig)
    generation: GenerationConfig = Field(default_factory=GenerationConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    ledger: LedgerConfig = Field(default_factory=LedgerConfig)
    registry: RegistryConfig = Field(default_factory=RegistryConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "case_sensitive": False, "extra": "ignore"}
