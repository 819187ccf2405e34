"""
Progression service for MintForge: grant experience, read power, check
evolution eligibility and run the level-up hook.

Writes for existing characters go through here; the ledger applies them and
the progression engine pre-computes each transition so invalid grants fail
before any transaction is submitted.
"""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from sqlalchemy.exc import SQLAlchemyError

from ..collaborators.protocols import LedgerClient
from ..error_types import ValidationReason
from ..exceptions import ValidationFailure, create_error_context
from ..models import CharacterRecord, GrantExperienceOperation, SeasonReceipt, TransferOperation, TransferReceipt
from ..persistence.owner_index import OwnerIndex
from ..structured_logging.enhanced_logging_config import get_logger
from .progression_engine import ProgressionEngine, require_int
from .season import SeasonClock

logger = get_logger(__name__)

# Type for level-up hook: (token_id, new_level) -> await None.
LevelUpHook = Callable[[int, int], Awaitable[None]]


@dataclass(frozen=True)
class ExperienceGrantResult:
    """Outcome of an experience grant. tx_ref is None when nothing was submitted."""

    record: CharacterRecord
    leveled_up: bool
    new_level: int
    tx_ref: str | None


class ProgressionService:
    """
    Service for character experience, level and evolution eligibility.

    Every read goes to the ledger; power and eligibility are recomputed from the
    current record on each call.
    """

    def __init__(
        self,
        ledger: LedgerClient,
        engine: ProgressionEngine | None = None,
        level_up_hook: LevelUpHook | None = None,
        season_clock: SeasonClock | None = None,
        owner_index: OwnerIndex | None = None,
    ) -> None:
        """
        Initialize the progression service.

        Args:
            ledger: Ledger the records live on
            engine: Progression rules (defaults to the standard constants)
            level_up_hook: Optional async hook (token_id, new_level) called on level-up
            season_clock: Season clock for advance_season (built on the ledger if None)
            owner_index: Owner index kept current on transfers, if one is configured
        """
        self.ledger = ledger
        self.engine = engine or ProgressionEngine()
        self._level_up_hook = level_up_hook
        self.season_clock = season_clock or SeasonClock(ledger)
        self.owner_index = owner_index
        logger.info("ProgressionService initialized")

    async def grant_experience(self, token_id: int, amount: int) -> ExperienceGrantResult:
        """
        Grant experience to a character.

        Args:
            token_id: Character to award experience to
            amount: Non-negative experience; 0 submits nothing

        Returns:
            ExperienceGrantResult with the updated record

        Raises:
            ValidationFailure: Negative or non-integer amount, overflow, or an evolved record
            NotFoundFailure: Unknown token
            LedgerFailure: The grant was rejected
        """
        amount = require_int(amount, "amount")
        record = await self.ledger.read_record(token_id)
        if record.evolved:
            raise ValidationFailure(
                f"Character {token_id} has evolved; its successor accrues experience instead",
                create_error_context(token_id=token_id, operation="grant_experience"),
                field="token_id",
                value=token_id,
                reason=ValidationReason.RECORD_RETIRED,
            )

        # Fails on overflow before anything is submitted.
        self.engine.apply_experience(record, amount)
        if amount == 0:
            return ExperienceGrantResult(record=record, leveled_up=False, new_level=record.level, tx_ref=None)

        receipt = await self.ledger.grant_experience(GrantExperienceOperation(token_id=token_id, amount=amount))
        # Concurrent grants may have landed since the first read; return what the ledger committed.
        updated = await self.ledger.read_record(token_id)
        leveled_up = receipt.leveled_up

        logger.info(
            "Experience granted",
            token_id=token_id,
            amount=amount,
            total_xp=updated.experience,
            level=updated.level,
            tx_ref=receipt.tx_ref,
        )
        if leveled_up:
            logger.info("Character leveled up", token_id=token_id, old_level=record.level, new_level=updated.level)
            if self._level_up_hook:
                await self._level_up_hook(token_id, receipt.new_level or updated.level)
        return ExperienceGrantResult(
            record=updated, leveled_up=leveled_up, new_level=updated.level, tx_ref=receipt.tx_ref
        )

    async def get_power(self, token_id: int, seasonal_bonus: int = 0) -> int:
        """Effective power of a character, read fresh from the ledger."""
        record = await self.ledger.read_record(token_id)
        return self.engine.power(record, seasonal_bonus)

    async def can_evolve(self, token_id: int) -> bool:
        record = await self.ledger.read_record(token_id)
        return self.engine.can_evolve(record)

    async def advance_season(self) -> SeasonReceipt:
        """Administrative: advance the global season by one."""
        return await self.season_clock.advance()

    async def transfer(self, token_id: int, from_address: str, to_address: str) -> TransferReceipt:
        """
        Transfer a character to another owner.

        Raises:
            ValidationFailure: Blank addresses
            NotFoundFailure: Unknown token
            LedgerFailure: from_address does not own the token
        """
        for field_name, address in (("from_address", from_address), ("to_address", to_address)):
            if not isinstance(address, str) or not address.strip():
                raise ValidationFailure(
                    f"{field_name} must be a non-empty string",
                    create_error_context(token_id=token_id, operation="transfer"),
                    field=field_name,
                    value=address,
                    reason=ValidationReason.INVALID_ADDRESS,
                )
        receipt = await self.ledger.transfer(
            TransferOperation(from_address=from_address.strip(), to_address=to_address.strip(), token_id=token_id)
        )
        if self.owner_index is not None:
            try:
                await self.owner_index.record_transfer(token_id, to_address)
            except SQLAlchemyError as e:
                logger.error("Owner index update failed", token_id=token_id, error=str(e))
        logger.info("Character transferred", token_id=token_id, tx_ref=receipt.tx_ref)
        return receipt
