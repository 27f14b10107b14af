from __future__ import annotations
import copy
import json
from functools import lru_cache
from pathlib import Path
from threading import RLock
from typing import Any, Callable, Dict, List, Optional, Protocol, Tuple, TypeVar

from errors import StoreUnavailable
from settings import get_settings

Document = Dict[str, Any]
T = TypeVar("T")

HOURLY_RECORDS = "hourlyRecords"
DAILY_REPORTS = "dailyReports"
WEEKLY_REPORTS = "weeklyReports"
MONTHLY_REPORTS = "monthlyReports"
SENSORS = "sensors"


class StoreTransaction(Protocol):
    def get(self, owner_id: str, collection: str, key: str) -> Optional[Document]:
        ...

    def set_merge(self, owner_id: str, collection: str, key: str, fields: Document) -> None:
        ...


class AggregationStore(Protocol):
    """Per-owner keyed documents with merge writes and atomic read-modify-write."""

    def get_document(self, owner_id: str, collection: str, key: str) -> Optional[Document]:
        ...

    def set_document_merge(
        self, owner_id: str, collection: str, key: str, fields: Document
    ) -> None:
        ...

    def list_documents(self, owner_id: str, collection: str) -> List[Tuple[str, Document]]:
        ...

    def run_atomic(self, fn: Callable[[StoreTransaction], T]) -> T:
        ...

    def list_active_owners(self) -> List[str]:
        ...


class _StagedTransaction:
    """Buffers merge writes until the enclosing ``run_atomic`` commits them."""

    def __init__(self, store: "MockDocumentStore") -> None:
        self._store = store
        self.staged: Dict[Tuple[str, str, str], Document] = {}

    def get(self, owner_id: str, collection: str, key: str) -> Optional[Document]:
        address = (owner_id, collection, key)
        if address in self.staged:
            return copy.deepcopy(self.staged[address])
        document = self._store._lookup(owner_id, collection, key)
        return copy.deepcopy(document) if document is not None else None

    def set_merge(self, owner_id: str, collection: str, key: str, fields: Document) -> None:
        current = self.get(owner_id, collection, key) or {}
        current.update(copy.deepcopy(fields))
        self.staged[(owner_id, collection, key)] = current


class MockDocumentStore:
    """In-process document store with optional JSON persistence."""

    def __init__(self, name: str = "reports", persistence_path: Optional[Path] = None) -> None:
        self.name = name
        self._owners: Dict[str, Document] = {}
        self._documents: Dict[str, Dict[str, Dict[str, Document]]] = {}
        self.persistence_path = persistence_path
        self._lock = RLock()
        if persistence_path:
            persistence_path.parent.mkdir(parents=True, exist_ok=True)
            self._load_from_disk()

    def register_owner(self, owner_id: str, active: bool = True) -> None:
        with self._lock:
            self._owners[owner_id] = {"ownerId": owner_id, "isActive": active}
            self._persist()

    def list_active_owners(self) -> List[str]:
        with self._lock:
            return sorted(
                owner_id for owner_id, profile in self._owners.items() if profile.get("isActive")
            )

    def get_document(self, owner_id: str, collection: str, key: str) -> Optional[Document]:
        with self._lock:
            document = self._lookup(owner_id, collection, key)
            return copy.deepcopy(document) if document is not None else None

    def set_document_merge(
        self, owner_id: str, collection: str, key: str, fields: Document
    ) -> None:
        self.run_atomic(lambda txn: txn.set_merge(owner_id, collection, key, fields))

    def list_documents(self, owner_id: str, collection: str) -> List[Tuple[str, Document]]:
        """Return deep copies of every document in an owner's collection."""

        with self._lock:
            documents = self._documents.get(owner_id, {}).get(collection, {})
            return [(key, copy.deepcopy(document)) for key, document in documents.items()]

    def run_atomic(self, fn: Callable[[StoreTransaction], T]) -> T:
        """Run ``fn`` under the store lock and commit its staged writes together.

        Nothing is written if ``fn`` raises or the commit cannot be persisted.
        """
        with self._lock:
            txn = _StagedTransaction(self)
            result = fn(txn)
            if not txn.staged:
                return result

            previous = {
                address: self._lookup(*address) for address in txn.staged
            }
            for (owner_id, collection, key), document in txn.staged.items():
                self._documents.setdefault(owner_id, {}).setdefault(collection, {})[key] = document
            try:
                self._persist()
            except StoreUnavailable:
                for (owner_id, collection, key), document in previous.items():
                    bucket = self._documents[owner_id][collection]
                    if document is None:
                        bucket.pop(key, None)
                    else:
                        bucket[key] = document
                raise
            return result

    def _lookup(self, owner_id: str, collection: str, key: str) -> Optional[Document]:
        return self._documents.get(owner_id, {}).get(collection, {}).get(key)

    def _persist(self) -> None:
        if not self.persistence_path:
            return
        payload = {"owners": self._owners, "documents": self._documents}
        try:
            self.persistence_path.write_text(json.dumps(payload, indent=2, sort_keys=True))
        except OSError as exc:
            raise StoreUnavailable(
                f"Could not persist store {self.name!r} to {self.persistence_path}"
            ) from exc

    def _load_from_disk(self) -> None:
        if not self.persistence_path or not self.persistence_path.exists():
            return

        try:
            raw = self.persistence_path.read_text() or "{}"
            data = json.loads(raw)
        except (OSError, json.JSONDecodeError):
            data = {}

        self._owners = dict(data.get("owners", {}))
        self._documents = dict(data.get("documents", {}))


@lru_cache
def build_default_store(
    name: Optional[str] = None,
    path: Optional[str] = None,
) -> MockDocumentStore:
    settings = get_settings()
    store_path = settings.store_path if path is None else path
    persistence = Path(store_path) if store_path else None
    return MockDocumentStore(name=name or "reports", persistence_path=persistence)
