"""
JSON File Storage Implementation

DESIGN DECISION: A single-user install keeps its whole ledger in one
JSON document per account, the way the browser version kept it in
local storage:
1. No database setup required
2. Users can open and back up their data with any text editor
3. Easy to export/migrate later

TRADEOFFS:
- Every write rewrites the account document (fine for personal volumes)
- No multi-process locking (one writer per account, see FinanceTracker)
- Atomicity comes from write-to-temp-then-rename

Budgets' spent values are written in one document rewrite when
reconciled in bulk, so a full recompute either lands completely or not
at all on this backend.
"""

import asyncio
import hashlib
import json
import os
import re
import tempfile
from decimal import Decimal
from pathlib import Path
from typing import Optional
from uuid import UUID

import structlog
from pydantic import ValidationError
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from expenseflow.config import get_settings
from expenseflow.models.audit import AuditEvent
from expenseflow.models.ledger import (
    AccountContext,
    Budget,
    Goal,
    GoalUpdate,
    Transaction,
    TransactionUpdate,
)
from expenseflow.services.storage.interface import (
    AuditStorageInterface,
    DuplicateError,
    LedgerStoreInterface,
    NotFoundError,
    StorageConnectionError,
    StorageError,
)


logger = structlog.get_logger(__name__)

DOCUMENT_SECTIONS = ("transactions", "budgets", "goals")
_SAFE_NAME = re.compile(r"[^A-Za-z0-9_.-]")


def _empty_document() -> dict:
    return {section: [] for section in DOCUMENT_SECTIONS}


class JsonFileLedgerStore(LedgerStoreInterface):
    """
    One JSON document per account under `data_dir`.

    Document layout:
        {"transactions": [...], "budgets": [...], "goals": [...]}

    Rows are the models' JSON dumps; money is stored as decimal strings.
    """

    def __init__(
        self,
        data_dir: Optional[Path] = None,
        retry_attempts: Optional[int] = None,
        retry_wait_seconds: Optional[float] = None,
    ):
        settings = get_settings().storage
        self._data_dir = Path(data_dir or settings.data_dir)
        self._retrying = Retrying(
            stop=stop_after_attempt(retry_attempts or settings.retry_attempts),
            wait=wait_exponential(
                multiplier=settings.retry_wait_seconds if retry_wait_seconds is None else retry_wait_seconds,
                max=10,
            ),
            retry=retry_if_exception_type(OSError),
            reraise=True,
        )
        self._lock = asyncio.Lock()

    # -------------------------------------------------------------------------
    # Document I/O
    # -------------------------------------------------------------------------

    def _document_path(self, account: AccountContext) -> Path:
        safe = _SAFE_NAME.sub("_", account.account_id)
        if safe != account.account_id:
            # Keep distinct accounts distinct after sanitizing
            digest = hashlib.sha256(account.account_id.encode("utf-8")).hexdigest()[:12]
            safe = f"{safe}-{digest}"
        return self._data_dir / f"{safe}.json"

    def _read_document(self, account: AccountContext) -> dict:
        path = self._document_path(account)
        if not path.exists():
            return _empty_document()
        try:
            with path.open("r", encoding="utf-8") as fh:
                document = json.load(fh)
        except json.JSONDecodeError as e:
            raise StorageError(f"Corrupt ledger file {path}: {e}")
        except OSError as e:
            raise StorageConnectionError(f"Failed to read ledger file {path}: {e}")

        for section in DOCUMENT_SECTIONS:
            document.setdefault(section, [])
        return document

    def _write_once(self, path: Path, document: dict) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=".", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(document, fh, indent=2)
            os.replace(tmp_name, path)
        except OSError:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise

    def _write_document(self, account: AccountContext, document: dict) -> None:
        path = self._document_path(account)
        try:
            self._retrying(self._write_once, path, document)
        except OSError as e:
            raise StorageConnectionError(f"Failed to write ledger file {path}: {e}")

    @staticmethod
    def _find(rows: list[dict], entity_id: UUID) -> int:
        key = str(entity_id)
        for idx, row in enumerate(rows):
            if row.get("id") == key:
                return idx
        return -1

    def _parse_rows(self, rows: list[dict], model: type, section: str) -> list:
        parsed = []
        for row in rows:
            try:
                parsed.append(model.model_validate(row))
            except ValidationError as e:
                # Skip malformed rows but say so
                logger.warning(
                    "ledger_row_skipped",
                    section=section,
                    row_id=row.get("id"),
                    error=str(e),
                )
        return parsed

    async def _insert(self, account: AccountContext, section: str, entity) -> None:
        async with self._lock:
            document = self._read_document(account)
            if self._find(document[section], entity.id) >= 0:
                raise DuplicateError(f"{section[:-1].capitalize()} already exists: {entity.id}")
            document[section].append(entity.model_dump(mode="json"))
            self._write_document(account, document)

    async def _replace(self, account: AccountContext, section: str, entity_id: UUID, mutate) -> None:
        """Load one row, hand its model to `mutate`, store the result."""
        model = {"transactions": Transaction, "budgets": Budget, "goals": Goal}[section]
        async with self._lock:
            document = self._read_document(account)
            idx = self._find(document[section], entity_id)
            if idx < 0:
                raise NotFoundError(f"{section[:-1].capitalize()} not found: {entity_id}")
            try:
                current = model.model_validate(document[section][idx])
            except ValidationError as e:
                raise StorageError(f"Corrupt {section} row {entity_id}: {e}")
            document[section][idx] = mutate(current).model_dump(mode="json")
            self._write_document(account, document)

    async def _remove(self, account: AccountContext, section: str, entity_id: UUID) -> None:
        async with self._lock:
            document = self._read_document(account)
            idx = self._find(document[section], entity_id)
            if idx < 0:
                raise NotFoundError(f"{section[:-1].capitalize()} not found: {entity_id}")
            del document[section][idx]
            self._write_document(account, document)

    # -------------------------------------------------------------------------
    # Transactions
    # -------------------------------------------------------------------------

    async def create_transaction(
        self,
        account: AccountContext,
        transaction: Transaction,
    ) -> Transaction:
        await self._insert(account, "transactions", transaction)
        return transaction

    async def update_transaction(
        self,
        account: AccountContext,
        transaction_id: UUID,
        changes: TransactionUpdate,
    ) -> None:
        await self._replace(account, "transactions", transaction_id, changes.apply_to)

    async def delete_transaction(
        self,
        account: AccountContext,
        transaction_id: UUID,
    ) -> None:
        await self._remove(account, "transactions", transaction_id)

    async def list_transactions(
        self,
        account: AccountContext,
    ) -> list[Transaction]:
        document = self._read_document(account)
        rows = self._parse_rows(document["transactions"], Transaction, "transactions")
        rows.sort(key=lambda t: t.created_at, reverse=True)
        return rows

    # -------------------------------------------------------------------------
    # Budgets
    # -------------------------------------------------------------------------

    async def create_budget(
        self,
        account: AccountContext,
        budget: Budget,
    ) -> Budget:
        await self._insert(account, "budgets", budget)
        return budget

    async def update_budget_amount(
        self,
        account: AccountContext,
        budget_id: UUID,
        amount: Decimal,
    ) -> None:
        await self._replace(account, "budgets", budget_id, lambda b: b.with_amount(amount))

    async def update_budget_spent(
        self,
        account: AccountContext,
        budget_id: UUID,
        spent: Decimal,
    ) -> None:
        await self._replace(account, "budgets", budget_id, lambda b: b.with_spent(spent))

    async def update_spent_batch(
        self,
        account: AccountContext,
        spent_by_budget: dict[UUID, Decimal],
    ) -> dict[UUID, StorageError]:
        """Write every spent value in a single document rewrite."""
        failures: dict[UUID, StorageError] = {}
        async with self._lock:
            try:
                document = self._read_document(account)
            except StorageError as e:
                return {budget_id: e for budget_id in spent_by_budget}

            rows = document["budgets"]
            for budget_id, spent in spent_by_budget.items():
                idx = self._find(rows, budget_id)
                if idx < 0:
                    failures[budget_id] = NotFoundError(f"Budget not found: {budget_id}")
                    continue
                try:
                    budget = Budget.model_validate(rows[idx]).with_spent(spent)
                except ValidationError as e:
                    failures[budget_id] = StorageError(f"Corrupt budgets row {budget_id}: {e}")
                    continue
                rows[idx] = budget.model_dump(mode="json")

            try:
                self._write_document(account, document)
            except StorageError as e:
                # Nothing landed: every budget in the batch failed
                return {budget_id: e for budget_id in spent_by_budget}
        return failures

    async def delete_budget(
        self,
        account: AccountContext,
        budget_id: UUID,
    ) -> None:
        await self._remove(account, "budgets", budget_id)

    async def list_budgets(
        self,
        account: AccountContext,
    ) -> list[Budget]:
        document = self._read_document(account)
        rows = self._parse_rows(document["budgets"], Budget, "budgets")
        rows.sort(key=lambda b: b.created_at)
        return rows

    # -------------------------------------------------------------------------
    # Goals
    # -------------------------------------------------------------------------

    async def create_goal(
        self,
        account: AccountContext,
        goal: Goal,
    ) -> Goal:
        await self._insert(account, "goals", goal)
        return goal

    async def update_goal_fields(
        self,
        account: AccountContext,
        goal_id: UUID,
        changes: GoalUpdate,
    ) -> None:
        await self._replace(account, "goals", goal_id, changes.apply_to)

    async def update_goal_current_amount(
        self,
        account: AccountContext,
        goal_id: UUID,
        current_amount: Decimal,
    ) -> None:
        await self._replace(
            account,
            "goals",
            goal_id,
            lambda g: Goal.model_validate({**g.model_dump(), "current_amount": current_amount}),
        )

    async def delete_goal(
        self,
        account: AccountContext,
        goal_id: UUID,
    ) -> None:
        await self._remove(account, "goals", goal_id)

    async def list_goals(
        self,
        account: AccountContext,
    ) -> list[Goal]:
        document = self._read_document(account)
        rows = self._parse_rows(document["goals"], Goal, "goals")
        rows.sort(key=lambda g: g.created_at)
        return rows

    async def clear_account(self, account: AccountContext) -> None:
        async with self._lock:
            self._write_document(account, _empty_document())


class JsonLinesAuditStorage(AuditStorageInterface):
    """
    Append-only audit log, one JSON object per line.

    Audit events are append-only.
    """

    def __init__(self, path: Optional[Path] = None):
        self._path = Path(path or get_settings().storage.data_dir / "audit.jsonl")

    async def append_event(self, event: AuditEvent) -> bool:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with self._path.open("a", encoding="utf-8") as fh:
                fh.write(event.to_json_line() + "\n")
            return True
        except OSError as e:
            # Audit logging must not break the main flow
            logger.warning("audit_append_failed", error=str(e), event_id=str(event.event_id))
            return False

    def _read_events(self) -> list[AuditEvent]:
        if not self._path.exists():
            return []
        events = []
        try:
            with self._path.open("r", encoding="utf-8") as fh:
                for line in fh:
                    line = line.strip()
                    if not line:
                        continue
                    try:
                        events.append(AuditEvent.model_validate_json(line))
                    except ValidationError:
                        continue
        except OSError as e:
            raise StorageError(f"Failed to read audit log: {e}")
        return events

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in self._read_events() if e.correlation_id == correlation_id]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: UUID,
    ) -> list[AuditEvent]:
        events = [
            e for e in self._read_events()
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
        account_id: Optional[str] = None,
    ) -> list[AuditEvent]:
        events = [
            e for e in self._read_events()
            if account_id is None or e.account_id == account_id
        ]
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
