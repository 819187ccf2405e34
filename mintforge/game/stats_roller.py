"""
Stat roller for MintForge.

Rolls a character's six base attributes at creation. Each attribute is drawn
uniformly from [floor, ceiling] inclusive, where the ceiling comes from a
fixed per-archetype table and the floor is global.
"""

import random
from collections.abc import Mapping

from ..models import ATTRIBUTE_ORDER, AttributeSet, AttributeType, CharacterArchetype
from ..structured_logging.enhanced_logging_config import get_logger

logger = get_logger(__name__)

ATTRIBUTE_FLOOR = 10

# Per-archetype ceilings. Values below the floor are clamped up when rolling.
ARCHETYPE_CEILINGS: dict[CharacterArchetype, dict[AttributeType, int]] = {
    CharacterArchetype.WARRIOR: {
        AttributeType.STR: 16,
        AttributeType.DEX: 12,
        AttributeType.CON: 14,
        AttributeType.INT: 8,
        AttributeType.WIS: 10,
        AttributeType.CHA: 10,
    },
    CharacterArchetype.MAGE: {
        AttributeType.STR: 8,
        AttributeType.DEX: 12,
        AttributeType.CON: 10,
        AttributeType.INT: 16,
        AttributeType.WIS: 14,
        AttributeType.CHA: 10,
    },
    CharacterArchetype.ROGUE: {
        AttributeType.STR: 10,
        AttributeType.DEX: 16,
        AttributeType.CON: 12,
        AttributeType.INT: 12,
        AttributeType.WIS: 10,
        AttributeType.CHA: 14,
    },
    CharacterArchetype.CLERIC: {
        AttributeType.STR: 12,
        AttributeType.DEX: 10,
        AttributeType.CON: 14,
        AttributeType.INT: 10,
        AttributeType.WIS: 16,
        AttributeType.CHA: 12,
    },
    CharacterArchetype.BARD: {
        AttributeType.STR: 10,
        AttributeType.DEX: 14,
        AttributeType.CON: 12,
        AttributeType.INT: 12,
        AttributeType.WIS: 10,
        AttributeType.CHA: 16,
    },
}


class StatRoller:
    """Rolls archetype-bounded attribute sets."""

    def __init__(
        self,
        rng: random.Random | None = None,
        floor: int = ATTRIBUTE_FLOOR,
        ceilings: Mapping[CharacterArchetype, Mapping[AttributeType, int]] | None = None,
    ) -> None:
        """
        Initialize the stat roller.

        Args:
            rng: Random source; pass a seeded random.Random for reproducible rolls
            floor: Global minimum for every attribute
            ceilings: Per-archetype ceiling table (defaults to ARCHETYPE_CEILINGS)
        """
        self._rng = rng or random.Random()
        self.floor = floor
        self._ceilings = ceilings if ceilings is not None else ARCHETYPE_CEILINGS
        logger.debug("StatRoller initialized", floor=floor)

    def bounds(self, archetype: CharacterArchetype) -> dict[AttributeType, tuple[int, int]]:
        """
        Effective inclusive range per attribute for an archetype.

        A ceiling configured below the floor is clamped up to the floor, so the
        range never inverts.
        """
        table = self._ceilings[archetype]
        return {attribute: (self.floor, max(int(table[attribute]), self.floor)) for attribute in ATTRIBUTE_ORDER}

    def roll(self, archetype: CharacterArchetype) -> AttributeSet:
        """
        Roll the six base attributes for an archetype.

        Args:
            archetype: The character archetype

        Returns:
            AttributeSet with every value in [floor, ceiling]
        """
        values = {
            attribute.value: self._rng.randint(low, high) for attribute, (low, high) in self.bounds(archetype).items()
        }
        attributes = AttributeSet(**values)
        logger.info("Attributes rolled", archetype=archetype.value, attributes=attributes.model_dump())
        return attributes
