"""
Ledger clients for MintForge.

InMemoryLedger is the reference ledger: the single writer of record, with
monotonically assigned token ids, a global season counter and one in-flight
write per signer. CustodialLedgerClient talks to a custodial signing service
over HTTP and exposes the same typed operations.
"""

import asyncio
import hashlib
import json
from collections.abc import Awaitable, Callable
from typing import Any

import httpx

from ..error_types import ValidationReason
from ..exceptions import (
    LedgerFailure,
    NotFoundFailure,
    ValidationFailure,
    create_error_context,
)
from ..game.progression_engine import ProgressionEngine
from ..models import (
    AdvanceSeasonOperation,
    CharacterRecord,
    EvolveOperation,
    EvolveReceipt,
    ExperienceReceipt,
    GrantExperienceOperation,
    LedgerReceipt,
    MintOperation,
    MintReceipt,
    SeasonReceipt,
    TransferOperation,
    TransferReceipt,
)
from ..structured_logging.enhanced_logging_config import get_logger

logger = get_logger(__name__)


class LedgerWriterMixin:
    """Dispatch any LedgerOperation to its typed write method."""

    mint: Callable[[MintOperation], Awaitable[MintReceipt]]
    transfer: Callable[[TransferOperation], Awaitable[TransferReceipt]]
    grant_experience: Callable[[GrantExperienceOperation], Awaitable[ExperienceReceipt]]
    evolve: Callable[[EvolveOperation], Awaitable[EvolveReceipt]]
    advance_season: Callable[[AdvanceSeasonOperation], Awaitable[SeasonReceipt]]

    async def submit(
        self,
        operation: MintOperation
        | TransferOperation
        | GrantExperienceOperation
        | EvolveOperation
        | AdvanceSeasonOperation,
    ) -> LedgerReceipt:
        """Submit one operation and return its receipt."""
        handlers: dict[type, Callable[[Any], Awaitable[LedgerReceipt]]] = {
            MintOperation: self.mint,
            TransferOperation: self.transfer,
            GrantExperienceOperation: self.grant_experience,
            EvolveOperation: self.evolve,
            AdvanceSeasonOperation: self.advance_season,
        }
        handler = handlers.get(type(operation))
        if handler is None:
            raise TypeError(f"Not a ledger operation: {type(operation).__name__}")
        return await handler(operation)


class InMemoryLedger(LedgerWriterMixin):
    """
    Reference ledger holding character records in process memory.

    Every write runs under one asyncio.Lock, modelling the signer's sequential
    nonce: however many sagas are in flight, writes are applied one at a time.
    Token ids start at 1, increase by one per mint (including evolution
    successors) and are never reused. Records are never deleted.
    """

    def __init__(
        self,
        engine: ProgressionEngine | None = None,
        initial_season: int = 1,
        write_latency: float = 0.0,
    ) -> None:
        """
        Initialize the ledger.

        Args:
            engine: Progression rules applied on experience grants and evolution
            initial_season: Season counter at genesis
            write_latency: Seconds each write holds the signer lock (for concurrency tests)
        """
        self._engine = engine or ProgressionEngine()
        self._records: dict[int, CharacterRecord] = {}
        self._next_id = 1
        self._season = initial_season
        self._nonce = 0
        self._write_latency = write_latency
        self._signer_lock = asyncio.Lock()
        self.transactions: list[dict[str, Any]] = []
        logger.info("InMemoryLedger initialized", initial_season=initial_season)

    def _commit(self, method: str, arguments: dict[str, Any]) -> str:
        """Record a transaction and return its reference."""
        self._nonce += 1
        payload = json.dumps({"nonce": self._nonce, "method": method, "args": arguments}, sort_keys=True, default=str)
        tx_ref = "0x" + hashlib.sha256(payload.encode("utf-8")).hexdigest()
        self.transactions.append({"nonce": self._nonce, "method": method, "args": arguments, "tx_ref": tx_ref})
        return tx_ref

    def _require(self, token_id: int) -> CharacterRecord:
        record = self._records.get(token_id)
        if record is None:
            raise NotFoundFailure(
                f"Token {token_id} does not exist",
                create_error_context(token_id=token_id, operation="read"),
                resource_type="character",
                resource_id=token_id,
            )
        return record

    async def _hold_signer(self) -> None:
        if self._write_latency > 0:
            await asyncio.sleep(self._write_latency)

    async def mint(self, operation: MintOperation) -> MintReceipt:
        async with self._signer_lock:
            await self._hold_signer()
            token_id = self._next_id
            record = CharacterRecord(
                token_id=token_id,
                owner=operation.owner,
                archetype=operation.archetype,
                attributes=operation.attributes,
                experience=0,
                level=1,
                season_id=self._season,
                evolved=False,
            )
            self._records[token_id] = record
            self._next_id += 1
            tx_ref = self._commit(operation.method, operation.to_named_arguments())
        logger.info("Character minted", token_id=token_id, season_id=record.season_id, tx_ref=tx_ref)
        return MintReceipt(token_id=token_id, tx_ref=tx_ref, season_id=record.season_id)

    async def transfer(self, operation: TransferOperation) -> TransferReceipt:
        async with self._signer_lock:
            await self._hold_signer()
            record = self._require(operation.token_id)
            if record.owner.lower() != operation.from_address.lower():
                raise LedgerFailure(
                    f"Token {operation.token_id} is not owned by {operation.from_address}",
                    create_error_context(token_id=operation.token_id, operation="transfer"),
                    method=operation.method,
                )
            self._records[operation.token_id] = record.model_copy(update={"owner": operation.to_address})
            tx_ref = self._commit(operation.method, operation.to_named_arguments())
        logger.info("Character transferred", token_id=operation.token_id, tx_ref=tx_ref)
        return TransferReceipt(tx_ref=tx_ref)

    async def grant_experience(self, operation: GrantExperienceOperation) -> ExperienceReceipt:
        async with self._signer_lock:
            await self._hold_signer()
            record = self._require(operation.token_id)
            if record.evolved:
                raise ValidationFailure(
                    f"Token {operation.token_id} has evolved and accrues no experience",
                    create_error_context(token_id=operation.token_id, operation="grant_experience"),
                    field="token_id",
                    value=operation.token_id,
                    reason=ValidationReason.RECORD_RETIRED,
                )
            outcome = self._engine.apply_experience(record, operation.amount)
            self._records[operation.token_id] = outcome.record
            tx_ref = self._commit(operation.method, operation.to_named_arguments())
        return ExperienceReceipt(
            tx_ref=tx_ref,
            new_level=outcome.new_level if outcome.leveled_up else None,
            leveled_up=outcome.leveled_up,
        )

    async def evolve(self, operation: EvolveOperation) -> EvolveReceipt:
        async with self._signer_lock:
            await self._hold_signer()
            record = self._require(operation.token_id)
            outcome = self._engine.evolve(record, operation.attributes, self._season)
            new_token_id = self._next_id
            self._records[operation.token_id] = outcome.retired
            self._records[new_token_id] = outcome.successor.model_copy(update={"token_id": new_token_id})
            self._next_id += 1
            tx_ref = self._commit(operation.method, operation.to_named_arguments())
        logger.info(
            "Character evolved",
            retired_token_id=operation.token_id,
            new_token_id=new_token_id,
            tx_ref=tx_ref,
        )
        return EvolveReceipt(new_token_id=new_token_id, tx_ref=tx_ref)

    async def advance_season(self, operation: AdvanceSeasonOperation) -> SeasonReceipt:
        async with self._signer_lock:
            await self._hold_signer()
            self._season += 1
            season_id = self._season
            tx_ref = self._commit(operation.method, operation.to_named_arguments())
        logger.info("Season advanced", season_id=season_id, tx_ref=tx_ref)
        return SeasonReceipt(season_id=season_id, tx_ref=tx_ref)

    async def read_owner(self, token_id: int) -> str:
        return self._require(token_id).owner

    async def read_record(self, token_id: int) -> CharacterRecord:
        return self._require(token_id)

    async def read_total_supply(self) -> int:
        return self._next_id - 1

    async def read_current_season(self) -> int:
        return self._season


class CustodialLedgerClient(LedgerWriterMixin):
    """
    Ledger client backed by a custodial signing service.

    Writes: POST /contracts/{address}/invoke with {"method", "args", "networkId"};
    the response carries the transaction hash, an optional explorer link and
    the decoded event logs. Reads: GET /contracts/{address}/read/{method}
    returning {"result": ...}.
    """

    def __init__(
        self,
        base_url: str,
        contract_address: str,
        api_key: str | None = None,
        network_id: str = "base-sepolia",
        timeout: float = 180.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        headers = {"Authorization": f"Bearer {api_key}"} if api_key else {}
        self._client = client or httpx.AsyncClient(base_url=base_url, headers=headers, timeout=timeout)
        self._contract_address = contract_address
        self._network_id = network_id
        self._signer_lock = asyncio.Lock()
        logger.info("CustodialLedgerClient initialized", base_url=base_url, network_id=network_id)

    async def aclose(self) -> None:
        await self._client.aclose()

    def _failure(self, method: str, exc: Exception) -> LedgerFailure:
        context = create_error_context(operation=method)
        if isinstance(exc, httpx.HTTPStatusError):
            return LedgerFailure(
                f"Ledger call {method} failed with HTTP {exc.response.status_code}",
                context,
                method=method,
                status_code=exc.response.status_code,
            )
        if isinstance(exc, httpx.TimeoutException):
            return LedgerFailure(f"Ledger call {method} timed out", context, method=method, details={"timeout": True})
        return LedgerFailure(f"Ledger call {method} failed: {exc}", context, method=method)

    async def _invoke(self, method: str, args: dict[str, Any]) -> dict[str, Any]:
        """Submit one write; serialized per signer."""
        async with self._signer_lock:
            logger.debug("Contract invocation details", method=method, args=args)
            try:
                response = await self._client.post(
                    f"/contracts/{self._contract_address}/invoke",
                    json={"method": method, "args": args, "networkId": self._network_id},
                )
                response.raise_for_status()
                payload = response.json()
            except (httpx.HTTPError, ValueError) as e:
                raise self._failure(method, e) from e
        if not isinstance(payload, dict) or not payload.get("hash"):
            raise LedgerFailure(f"Ledger call {method} returned no transaction hash", method=method)
        logger.info("Transaction confirmed", method=method, tx_ref=payload["hash"])
        return payload

    async def _read(self, method: str, **args: Any) -> Any:
        try:
            response = await self._client.get(
                f"/contracts/{self._contract_address}/read/{method}",
                params={key: str(value) for key, value in args.items()},
            )
            if response.status_code == 404:
                raise NotFoundFailure(
                    f"{method} found nothing for {args}",
                    create_error_context(token_id=args.get("tokenId"), operation=method),
                    resource_type="character",
                    resource_id=args.get("tokenId"),
                )
            response.raise_for_status()
            return response.json()["result"]
        except (httpx.HTTPError, ValueError, KeyError) as e:
            raise self._failure(method, e) from e

    @staticmethod
    def _event_args(payload: dict[str, Any], event_name: str) -> dict[str, Any] | None:
        for log in payload.get("logs") or []:
            if log.get("eventName") == event_name:
                return log.get("args") or {}
        return None

    async def mint(self, operation: MintOperation) -> MintReceipt:
        payload = await self._invoke(operation.method, operation.to_named_arguments())
        event = self._event_args(payload, "CharacterCreated")
        if event is None or event.get("tokenId") is None:
            raise LedgerFailure("Mint receipt carries no CharacterCreated event", method=operation.method)
        season_id = event.get("seasonId")
        if season_id is None:
            season_id = await self.read_current_season()
        return MintReceipt(
            token_id=int(event["tokenId"]),
            tx_ref=payload["hash"],
            season_id=int(season_id),
            tx_link=payload.get("transactionLink"),
        )

    async def transfer(self, operation: TransferOperation) -> TransferReceipt:
        payload = await self._invoke(operation.method, operation.to_named_arguments())
        return TransferReceipt(tx_ref=payload["hash"])

    async def grant_experience(self, operation: GrantExperienceOperation) -> ExperienceReceipt:
        payload = await self._invoke(operation.method, operation.to_named_arguments())
        event = self._event_args(payload, "LevelUp")
        new_level = int(event["newLevel"]) if event and event.get("newLevel") is not None else None
        return ExperienceReceipt(tx_ref=payload["hash"], new_level=new_level, leveled_up=new_level is not None)

    async def evolve(self, operation: EvolveOperation) -> EvolveReceipt:
        payload = await self._invoke(operation.method, operation.to_named_arguments())
        event = self._event_args(payload, "CharacterEvolved")
        if event is None or event.get("newTokenId") is None:
            raise LedgerFailure("Evolve receipt carries no CharacterEvolved event", method=operation.method)
        return EvolveReceipt(new_token_id=int(event["newTokenId"]), tx_ref=payload["hash"])

    async def advance_season(self, operation: AdvanceSeasonOperation) -> SeasonReceipt:
        payload = await self._invoke(operation.method, operation.to_named_arguments())
        event = self._event_args(payload, "SeasonAdvanced")
        season_id = event.get("seasonId") if event else None
        if season_id is None:
            season_id = await self.read_current_season()
        return SeasonReceipt(season_id=int(season_id), tx_ref=payload["hash"])

    async def read_owner(self, token_id: int) -> str:
        return str(await self._read("ownerOf", tokenId=token_id))

    async def read_record(self, token_id: int) -> CharacterRecord:
        owner = await self.read_owner(token_id)
        raw = await self._read("getCharacter", tokenId=token_id)
        try:
            return CharacterRecord.from_ledger_struct(token_id, owner, raw)
        except (KeyError, TypeError, ValueError) as e:
            raise LedgerFailure(f"Malformed character struct for token {token_id}: {e}", method="getCharacter") from e

    async def read_total_supply(self) -> int:
        return int(await self._read("totalSupply"))

    async def read_current_season(self) -> int:
        return int(await self._read("currentSeason"))
