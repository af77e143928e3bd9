"""Tests for the catalog service HTTP surface."""

from bson import ObjectId

from bookstore.catalog.store import DuplicateBookError, StoreWriteError


def create(client, book):
    response = client.post("/api/books", json=book)
    assert response.status_code == 200, response.text
    return response.json()["ID"]


class TestListBooks:
    def test_empty_collection(self, client):
        response = client.get("/api/books")
        assert response.status_code == 200
        assert response.json() == []

    def test_returns_wire_records(self, client, dune):
        book_id = create(client, dune)

        response = client.get("/api/books")

        assert response.json() == [{"id": book_id, **dune}]


class TestCreateBook:
    def test_returns_generated_identifier(self, client, dune):
        book_id = create(client, dune)
        assert ObjectId.is_valid(book_id)

    def test_client_identifier_is_ignored(self, client, dune):
        supplied = str(ObjectId())
        book_id = create(client, {"id": supplied, **dune})
        assert book_id != supplied

    def test_duplicate_is_rejected_without_write(self, client, dune):
        create(client, dune)

        response = client.post("/api/books", json=dune)

        assert response.status_code == 409
        assert len(client.get("/api/books").json()) == 1

    def test_racing_duplicate_caught_by_index(self, client, store, dune, monkeypatch):
        create(client, dune)
        monkeypatch.setattr(store, "duplicate_exists", lambda record, exclude_id=None: False)

        response = client.post("/api/books", json=dune)

        assert response.status_code == 409
        assert len(client.get("/api/books").json()) == 1

    def test_store_failure_is_a_generic_error(self, client, store, dune, monkeypatch):
        def fail(record):
            raise StoreWriteError("write failed")

        monkeypatch.setattr(store, "insert", fail)

        response = client.post("/api/books", json=dune)

        assert response.status_code == 500

    def test_invalid_body_is_rejected(self, client):
        response = client.post("/api/books", json={"name": "Dune"})
        assert response.status_code == 422


class TestUpdateBook:
    def test_replaces_fields(self, client, dune):
        book_id = create(client, dune)

        response = client.put("/api/books", json={"id": book_id, **dune, "pages": 413})

        assert response.status_code == 200
        assert response.json() == "Updated the book"
        assert client.get("/api/books").json() == [{"id": book_id, **dune, "pages": 413}]

    def test_same_values_twice_is_idempotent(self, client, dune):
        book_id = create(client, dune)
        changed = {"id": book_id, **dune, "pages": 413}

        assert client.put("/api/books", json=changed).status_code == 200
        after_once = client.get("/api/books").json()
        assert client.put("/api/books", json=changed).status_code == 200

        assert client.get("/api/books").json() == after_once

    def test_duplicate_of_new_values_is_rejected(self, client, dune):
        create(client, dune)
        other_id = create(client, {**dune, "name": "Dune Messiah"})

        response = client.put("/api/books", json={"id": other_id, **dune})

        assert response.status_code == 409
        names = sorted(b["name"] for b in client.get("/api/books").json())
        assert names == ["Dune", "Dune Messiah"]

    def test_index_violation_is_reported_as_duplicate(self, client, store, dune, monkeypatch):
        book_id = create(client, dune)

        def conflict(book_id, record):
            raise DuplicateBookError("E11000")

        monkeypatch.setattr(store, "update", conflict)

        response = client.put("/api/books", json={"id": book_id, **dune, "pages": 1})

        assert response.status_code == 409

    def test_unknown_identifier_is_accepted(self, client, dune):
        create(client, dune)
        before = client.get("/api/books").json()

        response = client.put("/api/books", json={"id": str(ObjectId()), **dune, "pages": 1})

        assert response.status_code == 200
        assert client.get("/api/books").json() == before

    def test_missing_or_invalid_identifier_is_rejected(self, client, dune):
        assert client.put("/api/books", json=dune).status_code == 400
        assert client.put("/api/books", json={"id": "nope", **dune}).status_code == 400


class TestDeleteBook:
    def test_removes_record(self, client, dune):
        book_id = create(client, dune)

        response = client.delete(f"/api/books/{book_id}")

        assert response.status_code == 200
        assert client.get("/api/books").json() == []

    def test_unknown_identifier_gives_same_response(self, client, dune):
        book_id = create(client, dune)
        existing = client.delete(f"/api/books/{book_id}")

        create(client, dune)
        before = client.get("/api/books").json()
        missing = client.delete(f"/api/books/{ObjectId()}")

        assert missing.status_code == existing.status_code == 200
        assert missing.json() == existing.json()
        assert client.get("/api/books").json() == before

    def test_invalid_identifier_is_a_no_op(self, client, dune):
        create(client, dune)

        response = client.delete("/api/books/not-a-valid-id")

        assert response.status_code == 200
        assert len(client.get("/api/books").json()) == 1

    def test_identifier_with_encoded_slash_is_a_no_op(self, client, dune):
        create(client, dune)

        response = client.delete("/api/books/abc%2Fdef")

        assert response.status_code == 200
        assert len(client.get("/api/books").json()) == 1


class TestPages:
    def test_index(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert "text/html" in response.headers["content-type"]

    def test_book_table(self, client, store, dune):
        store.seed()
        create(client, dune)

        body = client.get("/books").text

        assert "Frankenstein" in body
        assert "0-441-17271-7" in body

    def test_author_table(self, client, store):
        store.seed()
        body = client.get("/authors").text
        assert "Mary Shelley" in body
        assert "Frankenstein" not in body

    def test_year_table(self, client, store):
        store.seed()
        body = client.get("/years").text
        assert "1843" in body
        assert "Edgar Allan Poe" not in body

    def test_search_bar(self, client):
        response = client.get("/search")
        assert response.status_code == 200
        assert "<form" in response.text
        assert 'name="q"' not in response.text

    def test_create_page_is_not_modified(self, client):
        assert client.get("/create").status_code == 304

    def test_stylesheet_is_served(self, client):
        response = client.get("/css/style.css")
        assert response.status_code == 200
        assert "text/css" in response.headers["content-type"]

    def test_health(self, client):
        assert client.get("/health").json() == {"status": "ok"}


def test_end_to_end_scenario(client, dune):
    book_id = create(client, dune)
    assert {"id": book_id, **dune} in client.get("/api/books").json()

    assert client.post("/api/books", json=dune).status_code == 409

    response = client.put("/api/books", json={"id": book_id, **dune, "pages": 413})
    assert response.status_code == 200
    [stored] = [b for b in client.get("/api/books").json() if b["id"] == book_id]
    assert stored["pages"] == 413

    assert client.delete(f"/api/books/{book_id}").status_code == 200
    assert all(b["id"] != book_id for b in client.get("/api/books").json())
