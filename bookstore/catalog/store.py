"""
MongoDB-backed data store for the catalogue API.

``BookStore`` wraps a single ``pymongo`` collection and exposes the
narrow set of operations the routes need: list everything, look up
exact matches, insert, update in place and delete. It holds no cache;
every call is a fresh round trip so that independently deployed
replicas sharing one database always observe the same state.

Uniqueness of the five descriptive fields is checked with
``duplicate_exists()`` before every write. That check and the write
are two separate round trips, so ``ensure_collection()`` also creates
a unique compound index; when two replicas race with identical values
the index rejects the second write and ``DuplicateBookError`` is
raised from ``insert()``/``update()``.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional

from bson import ObjectId
from pymongo import ASCENDING
from pymongo.collection import Collection
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError, OperationFailure, PyMongoError

from .schemas import IDENTITY_FIELDS, BookRecord

logger = logging.getLogger(__name__)

UNIQUE_INDEX_NAME = "book_identity"

# Starter data inserted the first time a replica connects to an empty store.
STARTER_BOOKS: List[BookRecord] = [
    BookRecord(
        bookname="The Vortex",
        bookauthor="José Eustasio Rivera",
        bookisbn="958-30-0804-4",
        bookpages=292,
        bookyear=1924,
    ),
    BookRecord(
        bookname="Frankenstein",
        bookauthor="Mary Shelley",
        bookisbn="978-3-649-64609-9",
        bookpages=280,
        bookyear=1818,
    ),
    BookRecord(
        bookname="The Black Cat",
        bookauthor="Edgar Allan Poe",
        bookisbn="978-3-99168-238-7",
        bookpages=280,
        bookyear=1843,
    ),
]


class StoreError(Exception):
    """Base class for data store failures."""


class StoreUnavailableError(StoreError):
    """The store cannot be prepared; the service must not start."""


class StoreWriteError(StoreError):
    """An insert was not acknowledged by the store."""


class DuplicateBookError(StoreError):
    """A book with the same five descriptive fields already exists."""


def ensure_collection(database: Database, name: str, unique_index: bool = True) -> Collection:
    """Return the named collection, creating it when it does not exist yet.

    Parameters
    ----------
    database : Database
        Handle on the target database.
    name : str
        Collection name.
    unique_index : bool
        Also ensure the unique compound index over the descriptive
        fields. When existing data already violates it, a warning is
        logged and the service runs with the check-then-write race
        left open.

    Raises
    ------
    StoreUnavailableError
        If the collection list cannot be read, the collection cannot
        be created, or the server fails while creating the index.
    """
    try:
        names = database.list_collection_names()
    except PyMongoError as exc:
        raise StoreUnavailableError(f"cannot list collections of {database.name!r}: {exc}") from exc

    if name not in names:
        try:
            database.create_collection(name)
        except PyMongoError as exc:
            raise StoreUnavailableError(f"cannot create collection {name!r}: {exc}") from exc
        logger.info("Created collection %s.%s", database.name, name)

    collection = database[name]
    if unique_index:
        try:
            collection.create_index(
                [(field, ASCENDING) for field in IDENTITY_FIELDS],
                name=UNIQUE_INDEX_NAME,
                unique=True,
            )
        except (DuplicateKeyError, OperationFailure) as exc:
            logger.warning(
                "Unique index %s could not be created, concurrent duplicate writes "
                "are not prevented: %s",
                UNIQUE_INDEX_NAME,
                exc,
            )
        except PyMongoError as exc:
            raise StoreUnavailableError(f"cannot create index on {name!r}: {exc}") from exc
    return collection


class BookStore:
    """Data access for book records in one collection."""

    def __init__(self, collection: Collection):
        self.collection = collection

    # -- reads ---------------------------------------------------------

    def list_all(self) -> List[BookRecord]:
        return [BookRecord.from_document(doc) for doc in self.collection.find({})]

    def find_matching(self, record: BookRecord) -> List[BookRecord]:
        """Return every record whose five descriptive fields equal ``record``'s."""
        return [BookRecord.from_document(doc) for doc in self.collection.find(record.identity())]

    def duplicate_exists(self, record: BookRecord, exclude_id: Optional[ObjectId] = None) -> bool:
        """Return True if a record with the same five descriptive fields exists.

        ``exclude_id`` lets an update ignore the record being updated, so
        re-submitting unchanged values is not reported as a duplicate.
        """
        query = record.identity()
        if exclude_id is not None:
            query["_id"] = {"$ne": exclude_id}
        return self.collection.find_one(query, projection={"_id": 1}) is not None

    # -- projections used by the HTML pages ----------------------------

    def book_rows(self) -> List[Dict[str, Any]]:
        return [
            {
                "ID": str(r.id),
                "BookName": r.bookname,
                "BookAuthor": r.bookauthor,
                "BookISBN": r.bookisbn,
                "BookPages": r.bookpages,
            }
            for r in self.list_all()
        ]

    def author_rows(self) -> List[Dict[str, Any]]:
        return [{"ID": str(r.id), "BookAuthor": r.bookauthor} for r in self.list_all()]

    def year_rows(self) -> List[Dict[str, Any]]:
        return [{"ID": str(r.id), "BookYear": r.bookyear} for r in self.list_all()]

    # -- writes --------------------------------------------------------

    def insert(self, record: BookRecord) -> ObjectId:
        """Insert ``record`` as a new document and return its generated id.

        Any identifier carried by ``record`` is ignored.
        """
        try:
            result = self.collection.insert_one(record.identity())
        except DuplicateKeyError as exc:
            raise DuplicateBookError(str(exc)) from exc
        except PyMongoError as exc:
            raise StoreWriteError(str(exc)) from exc
        if not result.acknowledged or result.inserted_id is None:
            raise StoreWriteError("insert was not acknowledged")
        logger.info("Inserted book %s", result.inserted_id)
        return result.inserted_id

    def update(self, book_id: Optional[ObjectId], record: BookRecord) -> bool:
        """Replace the descriptive fields of the record with ``book_id``.

        Returns True when a document matched. An unknown id, or a write
        failure other than a uniqueness violation, leaves the store
        unchanged and returns False.
        """
        if book_id is None:
            return False
        try:
            result = self.collection.update_one({"_id": book_id}, {"$set": record.identity()})
        except DuplicateKeyError as exc:
            raise DuplicateBookError(str(exc)) from exc
        except PyMongoError as exc:
            logger.warning("Update of book %s failed: %s", book_id, exc)
            return False
        return result.matched_count > 0

    def delete(self, book_id: Optional[ObjectId]) -> bool:
        """Delete the record with ``book_id`` if present. Returns True if one was removed."""
        if book_id is None:
            return False
        try:
            result = self.collection.delete_one({"_id": book_id})
        except PyMongoError as exc:
            logger.warning("Delete of book %s failed: %s", book_id, exc)
            return False
        return result.deleted_count > 0

    def seed(self, records: Iterable[BookRecord] = STARTER_BOOKS) -> int:
        """Insert each starter record that is not stored yet.

        Returns the number of records inserted.

        Raises
        ------
        StoreUnavailableError
            If a starter record is stored more than once.
        """
        inserted = 0
        for record in records:
            matches = self.find_matching(record)
            if len(matches) > 1:
                raise StoreUnavailableError(
                    f"more than one stored record matches starter book {record.bookname!r}"
                )
            if matches:
                logger.debug("Starter book %r already stored as %s", record.bookname, matches[0].id)
                continue
            try:
                self.insert(record)
            except DuplicateBookError:
                # Another replica seeded it between the lookup and the insert.
                continue
            inserted += 1
        return inserted
