"""
JSON File Storage Implementation

DESIGN DECISION: A single local JSON file is the default backend because:
1. The ledger belongs to one installation, there is no server
2. The file is human-readable and trivially backed up
3. No database setup required

TRADEOFFS:
- The whole file is rewritten on every mutation (fine for personal use);
  bulk work such as an import runs inside `batch()` and writes once
- No multi-entity transactions; each mutation is durable on its own

Writes go to a temporary file that atomically replaces the ledger file,
and transient OS errors are retried, with async backoff, before giving up.
"""

import json
import os
import tempfile
from pathlib import Path
from typing import Optional

from pydantic import ValidationError
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from ceasflow.config import get_settings
from ceasflow.models.audit import AuditEvent
from ceasflow.models.ledger import Category, Transaction, Wallet
from ceasflow.services.storage.interface import (
    StorageConnectionError,
    StorageError,
)
from ceasflow.services.storage.memory import InMemoryLedgerStorage


FILE_FORMAT_VERSION = 1


class JsonFileLedgerStorage(InMemoryLedgerStorage):
    """
    Ledger storage backed by one JSON document.

    Layout:
        {"version": 1, "categories": [...], "wallets": [...],
         "transactions": [...], "audit": [...]}
    """

    def __init__(
        self,
        path: Optional[Path] = None,
        max_write_attempts: Optional[int] = None,
        audit_log_limit: Optional[int] = None,
    ):
        super().__init__()
        settings = get_settings().storage
        self._path = Path(path) if path else settings.ledger_path
        self._audit_limit = (
            audit_log_limit if audit_log_limit is not None else settings.audit_log_limit
        )
        self._retry_policy = dict(
            stop=stop_after_attempt(max_write_attempts or settings.max_write_attempts),
            wait=wait_exponential(multiplier=0.1, min=0.1, max=2),
            retry=retry_if_exception_type(OSError),
            reraise=True,
        )
        self._loaded = False

    @property
    def path(self) -> Path:
        return self._path

    async def _ensure_loaded(self) -> None:
        if self._loaded:
            return

        self._categories.clear()
        self._wallets.clear()
        self._transactions.clear()
        self._audit.clear()

        if self._path.exists():
            try:
                document = json.loads(self._path.read_text(encoding="utf-8"))
            except OSError as e:
                raise StorageConnectionError(f"Cannot read ledger file {self._path}: {e}")
            except json.JSONDecodeError as e:
                raise StorageError(f"Ledger file is not valid JSON: {e}")

            try:
                for raw in document.get("categories", []):
                    category = Category.model_validate(raw)
                    self._categories[category.id] = category
                for raw in document.get("wallets", []):
                    wallet = Wallet.model_validate(raw)
                    self._wallets[wallet.id] = wallet
                for raw in document.get("transactions", []):
                    transaction = Transaction.model_validate(raw)
                    self._transactions[transaction.id] = transaction
                for raw in document.get("audit", []):
                    self._audit.append(AuditEvent.model_validate(raw))
            except ValidationError as e:
                raise StorageError(f"Ledger file contains invalid data: {e}")

        self._loaded = True

    async def _flush(self) -> None:
        if self._audit_limit and len(self._audit) > self._audit_limit:
            del self._audit[:-self._audit_limit]

        document = {
            "version": FILE_FORMAT_VERSION,
            "categories": [c.to_storage_dict() for c in self._categories.values()],
            "wallets": [w.model_dump(mode="json") for w in self._wallets.values()],
            "transactions": [
                t.model_dump(mode="json") for t in self._transactions.values()
            ],
            "audit": [e.model_dump(mode="json") for e in self._audit],
        }
        payload = json.dumps(document, ensure_ascii=False, indent=2)

        try:
            async for attempt in AsyncRetrying(**self._retry_policy):
                with attempt:
                    self._write_file(payload)
        except OSError as e:
            # The cache now holds a change the file doesn't; reread on next access
            self._loaded = False
            raise StorageError(f"Failed to write ledger file {self._path}: {e}")

    def _write_file(self, payload: str) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            dir=self._path.parent,
            prefix=f".{self._path.name}.",
            suffix=".tmp",
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as tmp:
                tmp.write(payload)
            os.replace(tmp_name, self._path)
        except OSError:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise
