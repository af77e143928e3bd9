"""
HTML pages rendered from the book collection.

These routes only select fields for presentation; they carry no
business logic. They are served by the ``full`` pool of the gateway.
"""

from __future__ import annotations

from pathlib import Path

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import HTMLResponse
from fastapi.templating import Jinja2Templates

from .router import get_store
from .store import BookStore

TEMPLATE_DIR = Path(__file__).resolve().parents[1] / "templates"

templates = Jinja2Templates(directory=str(TEMPLATE_DIR))

router = APIRouter(tags=["pages"])


@router.get("/", response_class=HTMLResponse)
def index(request: Request):
    return templates.TemplateResponse(request, "index.html", {})


@router.get("/books", response_class=HTMLResponse)
def book_table(request: Request, store: BookStore = Depends(get_store)):
    return templates.TemplateResponse(request, "book-table.html", {"rows": store.book_rows()})


@router.get("/authors", response_class=HTMLResponse)
def author_table(request: Request, store: BookStore = Depends(get_store)):
    return templates.TemplateResponse(request, "author-table.html", {"rows": store.author_rows()})


@router.get("/years", response_class=HTMLResponse)
def year_table(request: Request, store: BookStore = Depends(get_store)):
    return templates.TemplateResponse(request, "year-table.html", {"rows": store.year_rows()})


@router.get("/search", response_class=HTMLResponse)
def search_bar(request: Request):
    return templates.TemplateResponse(request, "search-bar.html", {})


@router.get("/create")
def create_placeholder() -> Response:
    # Creation happens through POST /api/books; this page has nothing to show.
    return Response(status_code=304)
