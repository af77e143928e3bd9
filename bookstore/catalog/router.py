"""
Route definitions for the book API.

Endpoints under /api:
- GET    /books        : list every stored book
- POST   /books        : create a book, rejecting duplicates
- PUT    /books        : replace the fields of an existing book
- DELETE /books/{id}   : delete a book (unknown ids are a no-op)

Every replica serves all four routes; which replica receives which
verb is decided by the gateway in front of them.
"""

from __future__ import annotations

import logging
from typing import Dict, List

from fastapi import APIRouter, Depends, HTTPException, Request

from .schemas import Book, parse_object_id, to_book, to_record
from .store import BookStore, DuplicateBookError, StoreWriteError

logger = logging.getLogger(__name__)

DUPLICATE_STATUS = 409
DUPLICATE_DETAIL = "Duplicate not allowed"

router = APIRouter(prefix="/api", tags=["books"])


def get_store(request: Request) -> BookStore:
    """Return the store created for this application at startup."""
    return request.app.state.store


@router.get("/books", response_model=List[Book])
def list_books(store: BookStore = Depends(get_store)) -> List[Book]:
    return [to_book(record) for record in store.list_all()]


@router.post("/books")
def create_book(book: Book, store: BookStore = Depends(get_store)) -> Dict[str, str]:
    """Store a new book and return its generated identifier.

    The identifier sent by the client, if any, is ignored.
    """
    record = to_record(book)
    record.id = None
    if store.duplicate_exists(record):
        raise HTTPException(status_code=DUPLICATE_STATUS, detail=DUPLICATE_DETAIL)
    try:
        new_id = store.insert(record)
    except DuplicateBookError:
        raise HTTPException(status_code=DUPLICATE_STATUS, detail=DUPLICATE_DETAIL)
    except StoreWriteError as exc:
        logger.error("Could not insert book %r: %s", book.name, exc)
        raise HTTPException(status_code=500, detail="Could not save the book")
    return {"ID": str(new_id)}


@router.put("/books")
def update_book(book: Book, store: BookStore = Depends(get_store)) -> str:
    """Replace all descriptive fields of the book identified by ``book.id``.

    Updating an identifier that matches nothing is accepted and has no
    effect. The duplicate check runs against the new values and
    ignores the book being updated.
    """
    book_id = parse_object_id(book.id)
    if book_id is None:
        raise HTTPException(status_code=400, detail="A valid book id is required")
    record = to_record(book)
    if store.duplicate_exists(record, exclude_id=book_id):
        raise HTTPException(status_code=DUPLICATE_STATUS, detail=DUPLICATE_DETAIL)
    try:
        store.update(book_id, record)
    except DuplicateBookError:
        raise HTTPException(status_code=DUPLICATE_STATUS, detail=DUPLICATE_DETAIL)
    return "Updated the book"


@router.delete("/books/{book_id:path}")
def delete_book(book_id: str, store: BookStore = Depends(get_store)) -> str:
    # An id that does not decode, including one with an encoded slash, cannot match any record.
    store.delete(parse_object_id(book_id))
    return "Successfully deleted entry"
