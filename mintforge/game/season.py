"""
Season clock.

The season is a global counter held by the ledger. It starts at the ledger's
genesis season and moves forward only through an explicit administrative
advance; no creation or progression operation touches it.
"""

from ..collaborators.protocols import LedgerClient
from ..models import AdvanceSeasonOperation, SeasonReceipt
from ..structured_logging.enhanced_logging_config import get_logger

logger = get_logger(__name__)


class SeasonClock:
    """Reads and advances the ledger's season counter."""

    def __init__(self, ledger: LedgerClient) -> None:
        self.ledger = ledger

    async def current(self) -> int:
        """Current season, read from the ledger on every call."""
        return await self.ledger.read_current_season()

    async def advance(self) -> SeasonReceipt:
        """
        Advance the season by one.

        The write goes through the ledger like every other write, so it is
        ordered with in-flight mints by the signer's nonce sequence.
        """
        receipt = await self.ledger.advance_season(AdvanceSeasonOperation())
        logger.info("Season advanced", season_id=receipt.season_id, tx_ref=receipt.tx_ref)
        return receipt
