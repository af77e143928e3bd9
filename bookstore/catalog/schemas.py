"""
Schema definitions for the catalog module.

Two shapes of the same book exist:

* ``Book`` is the wire form exchanged with clients. Its ``id`` is the
  hex representation of the store identifier, and an empty string
  means the book has not been persisted yet.
* ``BookRecord`` is the persisted form. Its ``id`` is the MongoDB
  ``ObjectId`` stored under ``_id`` and the descriptive fields use the
  document field names of the ``information`` collection.

``to_record()`` and ``to_book()`` translate between them.
"""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional

from bson import ObjectId
from bson.errors import InvalidId
from pydantic import BaseModel, ConfigDict, Field

# Document field names, in the order of the uniqueness key.
IDENTITY_FIELDS = ("bookname", "bookauthor", "bookisbn", "bookpages", "bookyear")


class Book(BaseModel):
    """A single book as seen by API clients."""

    id: str = ""
    name: str
    author: str
    isbn: str
    pages: int = Field(ge=0)
    year: int


class BookRecord(BaseModel):
    """A single book as stored in the collection.

    ``id`` is ``None`` until the store has assigned one.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True, populate_by_name=True)

    id: Optional[ObjectId] = Field(default=None, alias="_id")
    bookname: str
    bookauthor: str
    bookisbn: str
    bookpages: int = Field(ge=0)
    bookyear: int

    def identity(self) -> Dict[str, Any]:
        """Return the five descriptive fields as an equality filter."""
        return {name: getattr(self, name) for name in IDENTITY_FIELDS}

    def to_document(self) -> Dict[str, Any]:
        doc = self.identity()
        if self.id is not None:
            doc["_id"] = self.id
        return doc

    @classmethod
    def from_document(cls, doc: Mapping[str, Any]) -> "BookRecord":
        return cls(
            _id=doc.get("_id"),
            bookname=doc.get("bookname", ""),
            bookauthor=doc.get("bookauthor", ""),
            bookisbn=doc.get("bookisbn", ""),
            bookpages=doc.get("bookpages", 0),
            bookyear=doc.get("bookyear", 0),
        )


def parse_object_id(value: Optional[str]) -> Optional[ObjectId]:
    """Decode a hex identifier, returning ``None`` when it is empty or invalid."""
    if not value:
        return None
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        return None


def to_record(book: Book) -> BookRecord:
    """Convert a wire book to its persisted shape.

    An identifier that does not decode is dropped, so the record looks
    like one that has never been stored.
    """
    return BookRecord(
        _id=parse_object_id(book.id),
        bookname=book.name,
        bookauthor=book.author,
        bookisbn=book.isbn,
        bookpages=book.pages,
        bookyear=book.year,
    )


def to_book(record: BookRecord) -> Book:
    return Book(
        id=str(record.id) if record.id is not None else "",
        name=record.bookname,
        author=record.bookauthor,
        isbn=record.bookisbn,
        pages=record.bookpages,
        year=record.bookyear,
    )
