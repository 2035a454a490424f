"""
Binder Repository - Persistence layer for binder documents.

Each binder is stored as one document:
- cards: position (as a string key) -> card entry document
- settings: grid size and page bounds
- missingInstances: instance ids flagged as missing
- version: incremented by every committed write
- changelog: most recent changes, newest last

Every public write returns a ``concurrent.futures.Future`` so callers can treat
local and remote stores the same way.
"""

from __future__ import annotations

import copy
import threading
from collections.abc import Callable, Iterable
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Protocol

import pymongo
from loguru import logger
from pymongo.errors import PyMongoError

from utils.binder_errors import PersistenceError
from utils.binder_models import (
    AddOptions,
    BinderDocument,
    BinderSettings,
    CardEntry,
    Move,
    PersistResult,
    generate_instance_id,
    utc_timestamp,
)
from utils.constants import (
    MONGO_BINDERS_COLLECTION,
    MONGO_DATABASE,
    MONGO_URI,
    PERSISTENCE_MAX_WORKERS,
)

CHANGELOG_LIMIT = 50


class BinderPersistence(Protocol):
    """Collaborator contract used by the placement engine."""

    def add(
        self,
        binder_id: str,
        entries: dict[int, CardEntry],
        start_position: int | None,
        options: AddOptions,
    ) -> Future: ...

    def move(self, binder_id: str, moves: list[Move]) -> Future: ...

    def remove(self, binder_id: str, positions: list[int]) -> Future: ...

    def clear(self, binder_id: str, reason: str) -> Future: ...

    def update_settings(self, binder_id: str, settings: BinderSettings) -> Future: ...

    def relayout(
        self, binder_id: str, cards: dict[int, CardEntry], settings: BinderSettings
    ) -> Future: ...

    def save_missing(self, binder_id: str, instance_ids: Iterable[str]) -> Future: ...

    def load(self, binder_id: str) -> Future: ...


# ============= Document Helpers =============


def new_binder_document(
    binder_id: str | None = None,
    owner_id: str = "local_user",
    settings: BinderSettings | None = None,
) -> dict[str, Any]:
    document = BinderDocument(
        binder_id=binder_id or generate_instance_id(),
        settings=settings or BinderSettings(),
        owner_id=owner_id,
    ).to_document()
    document["changelog"] = []
    _record_change(document, "binder_created", {})
    return document


def _record_change(document: dict[str, Any], change_type: str, data: dict[str, Any]) -> None:
    changelog = document.setdefault("changelog", [])
    changelog.append(
        {
            "id": generate_instance_id(),
            "timestamp": utc_timestamp(),
            "type": change_type,
            "userId": document.get("ownerId"),
            "data": data,
        }
    )
    del changelog[:-CHANGELOG_LIMIT]


def _apply_moves(cards: dict[str, Any], moves: list[Move]) -> None:
    # Lift every source first so no slot ever holds two entries
    lifted = [(move, cards.pop(str(move.from_position), None)) for move in moves]
    for move, card in lifted:
        if card is None:
            raise PersistenceError(f"No card stored at position {move.from_position}")
        key = str(move.to_position)
        if key in cards:
            raise PersistenceError(f"Stored position {move.to_position} is already occupied")
        cards[key] = card


def apply_add(
    document: dict[str, Any],
    entries: dict[int, CardEntry],
    start_position: int | None,
    options: AddOptions,
) -> int:
    if options.is_replacement:
        cards: dict[str, Any] = {}
        document["missingInstances"] = []
    else:
        cards = document.setdefault("cards", {})
    _apply_moves(cards, options.shift_moves)
    for position, entry in entries.items():
        key = str(position)
        if key in cards:
            raise PersistenceError(f"Stored position {position} is already occupied")
        cards[key] = entry.to_document()
    document["cards"] = cards
    if options.settings is not None:
        document["settings"] = options.settings.to_document()
    elif options.page_count is not None:
        document.setdefault("settings", {})["pageCount"] = options.page_count
    _record_change(
        document,
        "cards_batch_added",
        {
            "count": len(entries),
            "startPosition": start_position,
            "shifted": len(options.shift_moves),
            "isReplacement": options.is_replacement,
        },
    )
    return len(entries)


def apply_moves(document: dict[str, Any], moves: list[Move]) -> int:
    _apply_moves(document.setdefault("cards", {}), moves)
    _record_change(
        document, "batch_move_cards", {"operations": [move.to_document() for move in moves]}
    )
    return len(moves)


def apply_remove(document: dict[str, Any], positions: list[int]) -> int:
    cards = document.setdefault("cards", {})
    removed = [position for position in positions if cards.pop(str(position), None) is not None]
    if removed:
        missing = document.get("missingInstances") or []
        live = {card.get("instanceId") for card in cards.values()}
        document["missingInstances"] = [instance for instance in missing if instance in live]
    _record_change(document, "card_removed", {"positions": removed})
    return len(removed)


def apply_clear(document: dict[str, Any], reason: str) -> int:
    count = len(document.get("cards") or {})
    document["cards"] = {}
    document["missingInstances"] = []
    settings = document.setdefault("settings", {})
    settings["pageCount"] = settings.get("minPages") or 1
    _record_change(document, "cards_batch_cleared", {"reason": reason, "clearedCount": count})
    return count


def apply_relayout(
    document: dict[str, Any], cards: dict[int, CardEntry], settings: BinderSettings
) -> int:
    document["cards"] = {str(position): entry.to_document() for position, entry in cards.items()}
    document["settings"] = settings.to_document()
    _record_change(document, "cards_relayout", {"count": len(cards), "gridSize": settings.grid_size})
    return len(cards)


def apply_settings(document: dict[str, Any], settings: BinderSettings) -> int:
    document["settings"] = settings.to_document()
    _record_change(document, "settings_updated", settings.to_document())
    return 0


def apply_missing(document: dict[str, Any], instance_ids: Iterable[str]) -> int:
    document["missingInstances"] = sorted(instance_ids)
    return len(document["missingInstances"])


# ============= Repositories =============


class BinderRepository:
    """
    Shared read-modify-write flow for binder documents.

    Subclasses provide document reads/writes and how work is scheduled.
    """

    def _read(self, binder_id: str) -> dict[str, Any] | None:
        raise NotImplementedError

    def _write(self, document: dict[str, Any], expected_version: int | None) -> None:
        raise NotImplementedError

    def _submit(self, func: Callable[[], Any]) -> Future:
        raise NotImplementedError

    def _mutate(
        self, binder_id: str, description: str, mutation: Callable[[dict[str, Any]], int]
    ) -> Future:
        def work() -> PersistResult:
            document = self._read(binder_id)
            expected_version = None
            if document is None:
                document = new_binder_document(binder_id)
            else:
                expected_version = int(document.get("version") or 0)
            count = mutation(document)
            document["version"] = (expected_version or 0) + 1
            self._write(document, expected_version)
            logger.debug(
                f"Persisted {description} for binder {binder_id} (version {document['version']})"
            )
            return PersistResult(success=True, count=count, version=document["version"])

        return self._submit(work)

    # ============= Collaborator API =============

    def add(
        self,
        binder_id: str,
        entries: dict[int, CardEntry],
        start_position: int | None,
        options: AddOptions,
    ) -> Future:
        return self._mutate(
            binder_id, "add", lambda doc: apply_add(doc, entries, start_position, options)
        )

    def move(self, binder_id: str, moves: list[Move]) -> Future:
        return self._mutate(binder_id, "move", lambda doc: apply_moves(doc, moves))

    def remove(self, binder_id: str, positions: list[int]) -> Future:
        return self._mutate(binder_id, "remove", lambda doc: apply_remove(doc, positions))

    def clear(self, binder_id: str, reason: str) -> Future:
        return self._mutate(binder_id, "clear", lambda doc: apply_clear(doc, reason))

    def update_settings(self, binder_id: str, settings: BinderSettings) -> Future:
        return self._mutate(binder_id, "settings", lambda doc: apply_settings(doc, settings))

    def relayout(
        self, binder_id: str, cards: dict[int, CardEntry], settings: BinderSettings
    ) -> Future:
        return self._mutate(
            binder_id, "relayout", lambda doc: apply_relayout(doc, cards, settings)
        )

    def save_missing(self, binder_id: str, instance_ids: Iterable[str]) -> Future:
        ids = list(instance_ids)
        return self._mutate(binder_id, "missing flags", lambda doc: apply_missing(doc, ids))

    def load(self, binder_id: str) -> Future:
        def work() -> BinderDocument | None:
            document = self._read(binder_id)
            return BinderDocument.from_document(document) if document else None

        return self._submit(work)

    def create(
        self,
        binder_id: str | None = None,
        owner_id: str = "local_user",
        settings: BinderSettings | None = None,
    ) -> Future:
        def work() -> BinderDocument:
            document = new_binder_document(binder_id, owner_id, settings)
            self._write(document, None)
            logger.info(f"Created binder {document['_id']}")
            return BinderDocument.from_document(document)

        return self._submit(work)

    def get_changelog(self, binder_id: str) -> list[dict[str, Any]]:
        document = self._read(binder_id) or {}
        return list(document.get("changelog") or [])


class InMemoryBinderRepository(BinderRepository):
    """Process-local binder store. Work runs inline and futures come back resolved."""

    def __init__(self) -> None:
        self._documents: dict[str, dict[str, Any]] = {}
        self._lock = threading.Lock()

    def _read(self, binder_id: str) -> dict[str, Any] | None:
        with self._lock:
            document = self._documents.get(binder_id)
            return copy.deepcopy(document) if document is not None else None

    def _write(self, document: dict[str, Any], expected_version: int | None) -> None:
        with self._lock:
            current = self._documents.get(document["_id"])
            current_version = None if current is None else int(current.get("version") or 0)
            if current_version != expected_version:
                raise PersistenceError(
                    f"Binder {document['_id']} was modified concurrently "
                    f"(expected version {expected_version}, found {current_version})"
                )
            self._documents[document["_id"]] = copy.deepcopy(document)

    def _submit(self, func: Callable[[], Any]) -> Future:
        future: Future = Future()
        try:
            future.set_result(func())
        except Exception as exc:
            future.set_exception(exc)
        return future

    def binder_ids(self) -> list[str]:
        with self._lock:
            return sorted(self._documents)


class MongoBinderRepository(BinderRepository):
    """MongoDB-backed binder store. Writes are optimistic on the document version."""

    def __init__(
        self,
        mongo_client: pymongo.MongoClient | None = None,
        database: str = MONGO_DATABASE,
        collection: str = MONGO_BINDERS_COLLECTION,
        executor: ThreadPoolExecutor | None = None,
    ):
        """
        Initialize the binder repository.

        Args:
            mongo_client: MongoDB client instance. If None, creates a default client.
            database: Database name
            collection: Collection holding one document per binder
            executor: Thread pool used for writes. If None, a small pool is created.
        """
        self._client = mongo_client
        self._database_name = database
        self._collection_name = collection
        self._collection = None
        self._executor = executor

    def _get_collection(self):
        """Get or create the binders collection."""
        if self._collection is None:
            if self._client is None:
                self._client = pymongo.MongoClient(MONGO_URI)
            db = self._client.get_database(self._database_name)
            self._collection = db.get_collection(self._collection_name)
        return self._collection

    def _get_executor(self) -> ThreadPoolExecutor:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(
                max_workers=PERSISTENCE_MAX_WORKERS, thread_name_prefix="binder-db"
            )
        return self._executor

    def _read(self, binder_id: str) -> dict[str, Any] | None:
        try:
            return self._get_collection().find_one({"_id": binder_id})
        except PyMongoError as exc:
            raise PersistenceError(f"Failed to read binder {binder_id}: {exc}") from exc

    def _write(self, document: dict[str, Any], expected_version: int | None) -> None:
        collection = self._get_collection()
        try:
            if expected_version is None:
                collection.insert_one(document)
                return
            result = collection.replace_one(
                {"_id": document["_id"], "version": expected_version}, document
            )
        except PyMongoError as exc:
            raise PersistenceError(f"Failed to write binder {document['_id']}: {exc}") from exc
        if result.matched_count == 0:
            raise PersistenceError(
                f"Binder {document['_id']} was modified concurrently "
                f"(expected version {expected_version})"
            )

    def _submit(self, func: Callable[[], Any]) -> Future:
        return self._get_executor().submit(func)

    def delete(self, binder_id: str) -> bool:
        result = self._get_collection().delete_one({"_id": binder_id})
        if result.deleted_count > 0:
            logger.info(f"Deleted binder {binder_id}")
            return True
        logger.warning(f"Binder {binder_id} not found for deletion")
        return False

    def close(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None


_default_repository: MongoBinderRepository | None = None


def get_binder_repository() -> MongoBinderRepository:
    """Get the default binder repository instance."""
    global _default_repository
    if _default_repository is None:
        _default_repository = MongoBinderRepository()
    return _default_repository


def reset_binder_repository() -> None:
    """
    Reset the global binder repository instance.

    This is primarily useful for testing to ensure test isolation
    and prevent state leakage between tests.
    """
    global _default_repository
    if _default_repository is not None:
        _default_repository.close()
    _default_repository = None


__all__ = [
    "BinderPersistence",
    "BinderRepository",
    "InMemoryBinderRepository",
    "MongoBinderRepository",
    "apply_add",
    "apply_clear",
    "apply_moves",
    "apply_remove",
    "get_binder_repository",
    "new_binder_document",
    "reset_binder_repository",
]
