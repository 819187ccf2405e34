"""
Character registry: the read path over the ledger.

Lists the characters an address owns and reads single characters as views
carrying their computed power. Without an owner index, listing scans every
token id from 1 to the total supply; with one, it reads only the indexed ids.
Both modes return the same pages.
"""

from ..collaborators.protocols import LedgerClient
from ..error_types import ValidationReason
from ..exceptions import NotFoundFailure, ValidationFailure, create_error_context
from ..models import CharacterView
from ..persistence.owner_index import OwnerIndex
from ..structured_logging.enhanced_logging_config import get_logger
from .progression_engine import ProgressionEngine

logger = get_logger(__name__)

DEFAULT_PAGE_SIZE = 10


class CharacterRegistry:
    """Read-only queries over characters on the ledger."""

    def __init__(
        self,
        ledger: LedgerClient,
        engine: ProgressionEngine | None = None,
        owner_index: OwnerIndex | None = None,
        default_page_size: int = DEFAULT_PAGE_SIZE,
    ) -> None:
        self.ledger = ledger
        self.engine = engine or ProgressionEngine()
        self.owner_index = owner_index
        self.default_page_size = default_page_size

    async def get_character(self, token_id: int) -> CharacterView:
        """
        Read one character.

        Raises:
            NotFoundFailure: The token does not exist
            LedgerFailure: The read failed
        """
        record = await self.ledger.read_record(token_id)
        return CharacterView.from_record(record, self.engine.power(record))

    async def list_by_owner(
        self,
        owner_address: str,
        page: int = 1,
        page_size: int | None = None,
    ) -> tuple[list[CharacterView], int]:
        """
        List an owner's characters in ascending token-id order.

        Args:
            owner_address: Owner to list for (compared case-insensitively)
            page: 1-based page number
            page_size: Entries per page (registry default when None)

        Returns:
            (views on the requested page, total number of characters the owner holds)

        Raises:
            ValidationFailure: page or page_size below 1, or a blank address
            LedgerFailure: A ledger read failed
        """
        page_size = self.default_page_size if page_size is None else page_size
        self._validate_paging(owner_address, page, page_size)

        owned = await self._owned_token_ids(owner_address)
        start = (page - 1) * page_size
        views = []
        for token_id in owned[start : start + page_size]:
            record = await self.ledger.read_record(token_id)
            views.append(CharacterView.from_record(record, self.engine.power(record)))

        logger.debug(
            "Listed characters by owner",
            owner=owner_address,
            page=page,
            page_size=page_size,
            total=len(owned),
            indexed=self.owner_index is not None,
        )
        return views, len(owned)

    async def _owned_token_ids(self, owner_address: str) -> list[int]:
        if self.owner_index is not None:
            return await self.owner_index.token_ids_for(owner_address)

        wanted = owner_address.strip().lower()
        total = await self.ledger.read_total_supply()
        owned = []
        for token_id in range(1, total + 1):
            try:
                owner = await self.ledger.read_owner(token_id)
            except NotFoundFailure:
                logger.warning("Skipping unreadable token", token_id=token_id)
                continue
            if owner.strip().lower() == wanted:
                owned.append(token_id)
        return owned

    @staticmethod
    def _validate_paging(owner_address: str, page: int, page_size: int) -> None:
        context = create_error_context(owner=owner_address, operation="list_by_owner")
        if not isinstance(owner_address, str) or not owner_address.strip():
            raise ValidationFailure(
                "Owner address must be a non-empty string",
                context,
                field="owner_address",
                value=owner_address,
                reason=ValidationReason.INVALID_ADDRESS,
            )
        for field_name, value in (("page", page), ("page_size", page_size)):
            if isinstance(value, bool) or not isinstance(value, int) or value < 1:
                raise ValidationFailure(
                    f"{field_name} must be an integer of at least 1",
                    context,
                    field=field_name,
                    value=value,
                    reason=ValidationReason.INVALID_PAGE,
                )
