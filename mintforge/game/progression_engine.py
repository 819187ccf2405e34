"""
Progression engine for MintForge.

Pure state transitions over a CharacterRecord snapshot: experience gain and
level recomputation, evolution eligibility, evolution itself, and effective
power. The engine never talks to the ledger; callers persist what it returns.
"""

from dataclasses import dataclass

from ..error_types import ValidationReason
from ..exceptions import ValidationFailure, create_error_context
from ..models import MAX_UINT256, AttributeSet, CharacterRecord
from ..structured_logging.enhanced_logging_config import get_logger
from .level_curve import XP_PER_LEVEL, level_from_total_xp

logger = get_logger(__name__)

EVOLUTION_THRESHOLD = 5
EVOLUTION_POWER_MULTIPLIER = 2


@dataclass(frozen=True)
class ExperienceOutcome:
    """Result of applying experience to a record."""

    record: CharacterRecord
    leveled_up: bool
    new_level: int


@dataclass(frozen=True)
class EvolutionOutcome:
    """The retired predecessor and its proposed level-1 successor (no id yet)."""

    retired: CharacterRecord
    successor: CharacterRecord


def require_int(value: object, field: str) -> int:
    # bool is an int subclass but never a valid amount
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationFailure(
            f"{field} must be an integer, got {type(value).__name__}",
            field=field,
            value=value,
            reason=ValidationReason.INVALID_AMOUNT,
        )
    return value


class ProgressionEngine:
    """Stateless progression rules, parameterized by the progression constants."""

    def __init__(
        self,
        xp_per_level: int = XP_PER_LEVEL,
        evolution_threshold: int = EVOLUTION_THRESHOLD,
        evolution_power_multiplier: int = EVOLUTION_POWER_MULTIPLIER,
    ) -> None:
        if xp_per_level < 1 or evolution_threshold < 1 or evolution_power_multiplier < 1:
            raise ValueError("Progression constants must be at least 1")
        self.xp_per_level = xp_per_level
        self.evolution_threshold = evolution_threshold
        self.evolution_power_multiplier = evolution_power_multiplier

    def apply_experience(self, record: CharacterRecord, amount: int) -> ExperienceOutcome:
        """
        Apply an experience gain to a record.

        The engine does not refuse evolved records; whether a retired record may
        still accrue experience is decided by the caller (ProgressionService
        rejects it).

        Args:
            record: Current record snapshot
            amount: Non-negative experience to add (0 is a no-op)

        Returns:
            ExperienceOutcome with the new record, whether the level rose, and the new level

        Raises:
            ValidationFailure: If amount is negative, not an int, or the total overflows uint256
        """
        amount = require_int(amount, "amount")
        context = create_error_context(token_id=record.token_id, operation="apply_experience")
        if amount < 0:
            raise ValidationFailure(
                "Experience amount must be non-negative",
                context,
                field="amount",
                value=amount,
                reason=ValidationReason.INVALID_AMOUNT,
            )
        if amount == 0:
            return ExperienceOutcome(record=record, leveled_up=False, new_level=record.level)

        new_experience = record.experience + amount
        if new_experience > MAX_UINT256:
            raise ValidationFailure(
                "Experience total exceeds the representable range",
                context,
                field="amount",
                value=amount,
                reason=ValidationReason.EXPERIENCE_OVERFLOW,
            )

        # The stored level never decreases, even for a record whose level ran
        # ahead of its experience.
        new_level = max(level_from_total_xp(new_experience, self.xp_per_level), record.level)
        leveled_up = new_level > record.level
        updated = record.model_copy(update={"experience": new_experience, "level": new_level})

        logger.debug(
            "Experience applied",
            token_id=record.token_id,
            amount=amount,
            total_xp=new_experience,
            old_level=record.level,
            new_level=new_level,
        )
        return ExperienceOutcome(record=updated, leveled_up=leveled_up, new_level=new_level)

    def can_evolve(self, record: CharacterRecord) -> bool:
        """True when the record has reached the evolution threshold and has not evolved."""
        return record.level >= self.evolution_threshold and not record.evolved

    def require_evolvable(self, record: CharacterRecord) -> None:
        """
        Raise unless the record may evolve now.

        Raises:
            ValidationFailure: already_evolved, or evolution_not_eligible below the threshold level
        """
        context = create_error_context(token_id=record.token_id, operation="evolve")
        if record.evolved:
            raise ValidationFailure(
                f"Character {record.token_id} has already evolved",
                context,
                field="token_id",
                value=record.token_id,
                reason=ValidationReason.ALREADY_EVOLVED,
            )
        if record.level < self.evolution_threshold:
            raise ValidationFailure(
                f"Character {record.token_id} is level {record.level}; evolution requires level "
                f"{self.evolution_threshold}",
                context,
                field="level",
                value=record.level,
                reason=ValidationReason.EVOLUTION_NOT_ELIGIBLE,
            )

    def evolve(self, record: CharacterRecord, new_attributes: AttributeSet, current_season: int) -> EvolutionOutcome:
        """
        Retire a record and propose its successor.

        Args:
            record: Eligible record to retire
            new_attributes: Freshly rolled attributes for the successor
            current_season: Season the successor is minted under

        Returns:
            EvolutionOutcome with the retired record (evolved=True) and the
            successor (level 1, 0 XP, evolved=False, no token id yet)

        Raises:
            ValidationFailure: If the record already evolved or is under the threshold level
        """
        self.require_evolvable(record)
        current_season = require_int(current_season, "current_season")

        retired = record.model_copy(update={"evolved": True})
        successor = CharacterRecord(
            token_id=None,
            owner=record.owner,
            archetype=record.archetype,
            attributes=new_attributes,
            experience=0,
            level=1,
            season_id=current_season,
            evolved=False,
        )
        logger.info(
            "Evolution proposed",
            token_id=record.token_id,
            level=record.level,
            season_id=current_season,
        )
        return EvolutionOutcome(retired=retired, successor=successor)

    def power(self, record: CharacterRecord, seasonal_bonus: int = 0) -> int:
        """
        Effective power, recomputed from current state on every call.

        power = sum(attributes) * level * (multiplier if evolved else 1) + seasonal_bonus
        """
        seasonal_bonus = require_int(seasonal_bonus, "seasonal_bonus")
        multiplier = self.evolution_power_multiplier if record.evolved else 1
        return record.attributes.total() * record.level * multiplier + seasonal_bonus
