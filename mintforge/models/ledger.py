"""
Ledger operations and receipts.

The set of state-changing ledger calls is closed: each operation is its own
tagged model and LedgerOperation is their discriminated union, so an
unsupported method cannot be expressed.
"""

from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from .character import AttributeSet, CharacterArchetype


class MintOperation(BaseModel):
    """
    Mint a new character token to an owner.

    The archetype travels with the operation for ledgers that store it; the
    contract call itself takes only the owner, the stats and the token URI.
    """

    model_config = ConfigDict(frozen=True)

    kind: Literal["mint"] = "mint"
    owner: str = Field(min_length=1)
    archetype: CharacterArchetype
    attributes: AttributeSet
    metadata_uri: str = Field(min_length=1)

    @property
    def method(self) -> str:
        return "mint"

    def to_named_arguments(self) -> dict[str, Any]:
        return {
            "player": self.owner,
            "stats": [str(value) for value in self.attributes.as_array()],
            "tokenURI": self.metadata_uri,
        }


class TransferOperation(BaseModel):
    """Transfer a token between owners."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["transfer"] = "transfer"
    from_address: str = Field(min_length=1)
    to_address: str = Field(min_length=1)
    token_id: int = Field(ge=1)

    @property
    def method(self) -> str:
        return "transferFrom"

    def to_named_arguments(self) -> dict[str, Any]:
        return {"from": self.from_address, "to": self.to_address, "tokenId": str(self.token_id)}


class GrantExperienceOperation(BaseModel):
    """Add experience to a token; the ledger recomputes the level."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["grant_experience"] = "grant_experience"
    token_id: int = Field(ge=1)
    amount: int = Field(ge=0)

    @property
    def method(self) -> str:
        return "gainExperience"

    def to_named_arguments(self) -> dict[str, Any]:
        return {"tokenId": str(self.token_id), "amount": str(self.amount)}


class EvolveOperation(BaseModel):
    """Retire a token and mint its level-1 successor."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["evolve"] = "evolve"
    token_id: int = Field(ge=1)
    attributes: AttributeSet
    metadata_uri: str = Field(min_length=1)

    @property
    def method(self) -> str:
        return "evolve"

    def to_named_arguments(self) -> dict[str, Any]:
        return {
            "tokenId": str(self.token_id),
            "stats": [str(value) for value in self.attributes.as_array()],
            "tokenURI": self.metadata_uri,
        }


class AdvanceSeasonOperation(BaseModel):
    """Administrative: move the global season counter forward by one."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["advance_season"] = "advance_season"

    @property
    def method(self) -> str:
        return "advanceSeason"

    def to_named_arguments(self) -> dict[str, Any]:
        return {}


LedgerOperation = Annotated[
    MintOperation | TransferOperation | GrantExperienceOperation | EvolveOperation | AdvanceSeasonOperation,
    Field(discriminator="kind"),
]


class MintReceipt(BaseModel):
    model_config = ConfigDict(frozen=True)

    token_id: int
    tx_ref: str
    season_id: int
    tx_link: str | None = None


class TransferReceipt(BaseModel):
    model_config = ConfigDict(frozen=True)

    tx_ref: str


class ExperienceReceipt(BaseModel):
    model_config = ConfigDict(frozen=True)

    tx_ref: str
    new_level: int | None = None
    leveled_up: bool = False


class EvolveReceipt(BaseModel):
    model_config = ConfigDict(frozen=True)

    new_token_id: int
    tx_ref: str


class SeasonReceipt(BaseModel):
    model_config = ConfigDict(frozen=True)

    season_id: int
    tx_ref: str


LedgerReceipt = MintReceipt | TransferReceipt | ExperienceReceipt | EvolveReceipt | SeasonReceipt
