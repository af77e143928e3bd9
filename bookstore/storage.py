# bookstore/storage.py
import logging
from typing import Optional, Tuple

from pymongo import MongoClient
from pymongo.errors import PyMongoError

from .catalog.store import BookStore, StoreUnavailableError, ensure_collection
from .settings import CatalogSettings

logger = logging.getLogger(__name__)


def connect(settings: CatalogSettings) -> MongoClient:
    """Open the client and make sure the server answers within the connect deadline."""
    timeout_ms = int(settings.connect_timeout_seconds * 1000)
    try:
        # A malformed URI fails here with ConfigurationError or InvalidURI.
        client: MongoClient = MongoClient(
            settings.database_uri,
            serverSelectionTimeoutMS=timeout_ms,
            connectTimeoutMS=timeout_ms,
        )
    except PyMongoError as exc:
        raise StoreUnavailableError(f"invalid database configuration: {exc}") from exc
    try:
        client.admin.command("ping")
    except PyMongoError as exc:
        client.close()
        raise StoreUnavailableError(f"database not reachable: {exc}") from exc
    return client


def open_store(
    settings: CatalogSettings, client: Optional[MongoClient] = None
) -> Tuple[MongoClient, BookStore]:
    """Connect, prepare the collection and optionally load the starter books."""
    if client is None:
        client = connect(settings)
    collection = ensure_collection(client[settings.database_name], settings.collection_name)
    store = BookStore(collection)
    if settings.seed_data:
        try:
            added = store.seed()
        except PyMongoError as exc:
            raise StoreUnavailableError(f"cannot load starter books: {exc}") from exc
        logger.info("Seeded %d starter book(s)", added)
    return client, store
