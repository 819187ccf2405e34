"""
Character data model for MintForge.

CharacterRecord mirrors the on-chain per-token struct: six unsigned 8-bit
attributes, experience, level, season and the evolved flag, plus the owner
and archetype the ledger keeps alongside it.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Unsigned on-chain field widths
MAX_ATTRIBUTE_VALUE = 2**8 - 1
MAX_UINT256 = 2**256 - 1


class CharacterArchetype(str, Enum):
    """Fixed character class, chosen at creation and never changed."""

    WARRIOR = "warrior"
    MAGE = "mage"
    ROGUE = "rogue"
    CLERIC = "cleric"
    BARD = "bard"

    @classmethod
    def parse(cls, value: "str | CharacterArchetype") -> "CharacterArchetype":
        """
        Parse an archetype leniently (case and surrounding whitespace ignored).

        Raises:
            ValueError: If the value names no archetype
        """
        if isinstance(value, cls):
            return value
        normalized = str(value or "").strip().lower()
        try:
            return cls(normalized)
        except ValueError as e:
            valid = ", ".join(item.value for item in cls)
            raise ValueError(f"Unknown archetype {value!r}; expected one of: {valid}") from e


class AttributeType(str, Enum):
    """The six character attributes."""

    STR = "strength"
    DEX = "dexterity"
    CON = "constitution"
    INT = "intelligence"
    WIS = "wisdom"
    CHA = "charisma"


# Canonical order for the mint argument array and the metadata trait list
ATTRIBUTE_ORDER: tuple[AttributeType, ...] = (
    AttributeType.STR,
    AttributeType.DEX,
    AttributeType.CON,
    AttributeType.INT,
    AttributeType.WIS,
    AttributeType.CHA,
)


class AttributeSet(BaseModel):
    """Six bounded integer attributes, immutable once rolled."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    strength: int = Field(ge=0, le=MAX_ATTRIBUTE_VALUE)
    dexterity: int = Field(ge=0, le=MAX_ATTRIBUTE_VALUE)
    constitution: int = Field(ge=0, le=MAX_ATTRIBUTE_VALUE)
    intelligence: int = Field(ge=0, le=MAX_ATTRIBUTE_VALUE)
    wisdom: int = Field(ge=0, le=MAX_ATTRIBUTE_VALUE)
    charisma: int = Field(ge=0, le=MAX_ATTRIBUTE_VALUE)

    def get(self, attribute: AttributeType) -> int:
        """Return the value of one attribute."""
        return int(getattr(self, attribute.value))

    def as_array(self) -> tuple[int, int, int, int, int, int]:
        """Return the attributes in canonical order."""
        return (
            self.strength,
            self.dexterity,
            self.constitution,
            self.intelligence,
            self.wisdom,
            self.charisma,
        )

    @classmethod
    def from_array(cls, values: "list[int] | tuple[int, ...]") -> "AttributeSet":
        """Build an AttributeSet from a canonical-order sequence of six values."""
        if len(values) != len(ATTRIBUTE_ORDER):
            raise ValueError(f"Expected {len(ATTRIBUTE_ORDER)} attribute values, got {len(values)}")
        return cls(**{attribute.value: int(value) for attribute, value in zip(ATTRIBUTE_ORDER, values, strict=True)})

    def total(self) -> int:
        """Sum of the six attributes."""
        return sum(self.as_array())


class CharacterRecord(BaseModel):
    """
    Authoritative character state as held by the ledger.

    token_id is None only on a proposed evolution successor the ledger has
    not yet minted.
    """

    model_config = ConfigDict(frozen=True)

    token_id: int | None = Field(default=None, ge=1)
    owner: str
    archetype: CharacterArchetype
    attributes: AttributeSet
    experience: int = Field(default=0, ge=0, le=MAX_UINT256)
    level: int = Field(default=1, ge=1, le=MAX_UINT256)
    season_id: int = Field(default=1, ge=1)
    evolved: bool = False

    @field_validator("owner")
    @classmethod
    def validate_owner(cls, v: str) -> str:
        """Owner addresses must be non-empty."""
        if not v or not v.strip():
            raise ValueError("owner address must not be empty")
        return v.strip()

    @classmethod
    def from_ledger_struct(cls, token_id: int, owner: str, raw: dict[str, Any]) -> "CharacterRecord":
        """
        Decode a getCharacter struct. Numeric fields may arrive as strings.

        Raises:
            KeyError, TypeError, ValueError: The struct is malformed
        """
        return cls(
            token_id=token_id,
            owner=owner,
            archetype=CharacterArchetype.parse(raw["class"]),
            attributes=AttributeSet.from_array([raw[attribute.value] for attribute in ATTRIBUTE_ORDER]),
            experience=int(raw["experience"]),
            level=int(raw["level"]),
            season_id=int(raw["seasonId"]),
            evolved=_as_bool(raw["evolved"]),
        )


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() == "true"
    return bool(value)


class CharacterView(BaseModel):
    """Read-side reconstruction of a character for listings."""

    model_config = ConfigDict(frozen=True)

    token_id: int
    owner: str
    archetype: CharacterArchetype
    attributes: AttributeSet
    experience: int
    level: int
    season_id: int
    evolved: bool
    power: int

    @classmethod
    def from_record(cls, record: CharacterRecord, power: int) -> "CharacterView":
        """Build a view from a ledger record and its computed power."""
        if record.token_id is None:
            raise ValueError("Cannot build a view of an unminted record")
        return cls(
            token_id=record.token_id,
            owner=record.owner,
            archetype=record.archetype,
            attributes=record.attributes,
            experience=record.experience,
            level=record.level,
            season_id=record.season_id,
            evolved=record.evolved,
            power=power,
        )
