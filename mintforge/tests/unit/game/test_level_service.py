"""
Unit tests for ProgressionService: grant_experience, power, eligibility,
level-up hook, season advance and transfers.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from mintforge.collaborators.ledger import InMemoryLedger
from mintforge.exceptions import LedgerFailure, NotFoundFailure, ValidationFailure
from mintforge.game.level_curve import level_from_total_xp
from mintforge.game.level_service import ProgressionService
from mintforge.models import MAX_UINT256, CharacterArchetype, ExperienceReceipt, MintOperation
from mintforge.persistence.owner_index import OwnerIndex

# pylint: disable=redefined-outer-name  # Reason: pytest fixture parameter names must match fixture names


@pytest.fixture
def service(ledger, engine):
    return ProgressionService(ledger, engine=engine)


@pytest.fixture
def mock_ledger(make_record):
    """Ledger mock returning a fresh level-1 record."""
    ledger = MagicMock()
    ledger.read_record = AsyncMock(return_value=make_record())
    ledger.grant_experience = AsyncMock(
        return_value=ExperienceReceipt(tx_ref="0xabc", new_level=None, leveled_up=False)
    )
    return ledger


@pytest.mark.asyncio
async def test_grant_2500_reaches_level_3(service, ledger, mint):
    receipt = await mint("0xA")
    result = await service.grant_experience(receipt.token_id, 2500)
    assert result.new_level == 3
    assert result.leveled_up is True
    assert result.tx_ref is not None
    stored = await ledger.read_record(receipt.token_id)
    assert stored.level == 3
    assert stored.experience == 2500


@pytest.mark.asyncio
async def test_grant_zero_submits_nothing(mock_ledger):
    service = ProgressionService(mock_ledger)
    result = await service.grant_experience(1, 0)
    assert result.tx_ref is None
    assert result.leveled_up is False
    mock_ledger.grant_experience.assert_not_called()


@pytest.mark.asyncio
async def test_grant_negative_raises(mock_ledger):
    service = ProgressionService(mock_ledger)
    with pytest.raises(ValidationFailure) as exc_info:
        await service.grant_experience(1, -1)
    assert exc_info.value.reason == "invalid_amount"
    mock_ledger.grant_experience.assert_not_called()


@pytest.mark.asyncio
async def test_grant_bool_rejected_before_read(mock_ledger):
    service = ProgressionService(mock_ledger)
    with pytest.raises(ValidationFailure):
        await service.grant_experience(1, True)
    mock_ledger.read_record.assert_not_called()


@pytest.mark.asyncio
async def test_grant_to_evolved_record_rejected(mock_ledger, make_record):
    mock_ledger.read_record.return_value = make_record(level=5, evolved=True)
    service = ProgressionService(mock_ledger)
    with pytest.raises(ValidationFailure) as exc_info:
        await service.grant_experience(1, 100)
    assert exc_info.value.reason == "record_retired"
    mock_ledger.grant_experience.assert_not_called()


@pytest.mark.asyncio
async def test_overflow_fails_before_transaction(mock_ledger, make_record):
    mock_ledger.read_record.return_value = make_record(experience=MAX_UINT256)
    service = ProgressionService(mock_ledger)
    with pytest.raises(ValidationFailure) as exc_info:
        await service.grant_experience(1, 1)
    assert exc_info.value.reason == "experience_overflow"
    mock_ledger.grant_experience.assert_not_called()


@pytest.mark.asyncio
async def test_grant_unknown_token_not_found(service):
    with pytest.raises(NotFoundFailure):
        await service.grant_experience(99, 10)


@pytest.mark.asyncio
async def test_ledger_rejection_propagates(mock_ledger):
    mock_ledger.grant_experience.side_effect = LedgerFailure("out of gas", method="gainExperience")
    service = ProgressionService(mock_ledger)
    with pytest.raises(LedgerFailure):
        await service.grant_experience(1, 100)


@pytest.mark.asyncio
async def test_level_up_calls_hook(ledger, mint):
    hook = AsyncMock()
    service = ProgressionService(ledger, level_up_hook=hook)
    receipt = await mint("0xA")
    await service.grant_experience(receipt.token_id, 1000)
    hook.assert_awaited_once_with(receipt.token_id, 2)


@pytest.mark.asyncio
async def test_no_level_up_no_hook(ledger, mint):
    hook = AsyncMock()
    service = ProgressionService(ledger, level_up_hook=hook)
    receipt = await mint("0xA")
    result = await service.grant_experience(receipt.token_id, 500)
    assert result.leveled_up is False
    hook.assert_not_called()


@pytest.mark.asyncio
async def test_get_power_reads_fresh(service, mint):
    receipt = await mint("0xA")
    before = await service.get_power(receipt.token_id)
    await service.grant_experience(receipt.token_id, 1000)
    after = await service.get_power(receipt.token_id, seasonal_bonus=3)
    assert before == 72
    assert after == 72 * 2 + 3


@pytest.mark.asyncio
async def test_can_evolve(service, mint):
    receipt = await mint("0xA")
    assert await service.can_evolve(receipt.token_id) is False
    await service.grant_experience(receipt.token_id, 4000)
    assert await service.can_evolve(receipt.token_id) is True


@pytest.mark.asyncio
async def test_advance_season(service, ledger):
    receipt = await service.advance_season()
    assert receipt.season_id == 2
    assert await ledger.read_current_season() == 2


@pytest.mark.asyncio
async def test_transfer_updates_owner_and_index(ledger, mint):
    index = OwnerIndex()
    service = ProgressionService(ledger, owner_index=index)
    receipt = await mint("0xA")
    await index.record_mint(receipt.token_id, "0xA")

    await service.transfer(receipt.token_id, "0xA", "0xB")

    assert await ledger.read_owner(receipt.token_id) == "0xB"
    assert await index.token_ids_for("0xB") == [receipt.token_id]
    assert await index.token_ids_for("0xA") == []
    await index.close()


@pytest.mark.asyncio
async def test_transfer_by_non_owner_fails(service, mint):
    receipt = await mint("0xA")
    with pytest.raises(LedgerFailure):
        await service.transfer(receipt.token_id, "0xC", "0xB")


@pytest.mark.asyncio
async def test_transfer_blank_address_rejected(service):
    with pytest.raises(ValidationFailure) as exc_info:
        await service.transfer(1, "0xA", " ")
    assert exc_info.value.reason == "invalid_address"


@pytest.mark.asyncio
async def test_concurrent_grants_return_committed_records(engine, make_record):
    ledger = InMemoryLedger(engine=engine, write_latency=0.01)
    service = ProgressionService(ledger, engine=engine)
    minted = await ledger.mint(
        MintOperation(
            owner="0xA",
            archetype=CharacterArchetype.WARRIOR,
            attributes=make_record().attributes,
            metadata_uri="ipfs://meta",
        )
    )

    results = await asyncio.gather(
        service.grant_experience(minted.token_id, 600),
        service.grant_experience(minted.token_id, 600),
    )

    stored = await ledger.read_record(minted.token_id)
    assert stored.experience == 1200
    assert stored.level == 2
    for result in results:
        assert result.record.level == level_from_total_xp(result.record.experience, engine.xp_per_level)
        assert result.new_level == result.record.level
    assert [result.leveled_up for result in results].count(True) == 1
    assert max(results, key=lambda result: result.record.experience).record == stored
