"""
Catalog package for the bookstore service.

This package contains the book schemas, the MongoDB-backed store with
its duplicate check, the JSON API under ``/api`` and the HTML pages
that render read-only views of the collection.
"""

from .pages import router as pages_router  # noqa: F401
from .router import router as api_router  # noqa: F401
