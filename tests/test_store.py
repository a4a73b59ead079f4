import pytest

from libraryau.errors import StoreFailure
from libraryau.store import SQLiteDocumentStore


@pytest.fixture
def db(tmp_path):
    return SQLiteDocumentStore(str(tmp_path / "docs.db"))


def test_insert_and_get(db):
    doc_id = db.insert("students", {"name": "Ayşe", "studentNumber": "12345678"})
    doc = db.get("students", doc_id)
    assert doc == {"id": doc_id, "name": "Ayşe", "studentNumber": "12345678"}
    assert db.get("students", "yok") is None
    # Koleksiyonlar birbirinden ayrıdır
    assert db.get("bookCopies", doc_id) is None


def test_query_filters_orders_and_limits(db):
    db.replace("loans", "a", {"studentId": "s1", "borrowDate": "2024-03-01T10:00:00"})
    db.replace("loans", "b", {"studentId": "s2", "borrowDate": "2024-03-05T10:00:00"})
    db.replace("loans", "c", {"studentId": "s1", "borrowDate": "2024-03-03T10:00:00"})
    db.replace("loans", "d", {"studentId": "s1"})

    ids = lambda docs: [d["id"] for d in docs]
    assert ids(db.query("loans", where={"studentId": "s1"})) == ["a", "c", "d"]
    assert ids(db.query("loans", order_by="borrowDate")) == ["a", "c", "b", "d"]
    assert ids(db.query("loans", order_by="borrowDate", descending=True)) == ["b", "c", "a", "d"]
    assert ids(db.query("loans", order_by="borrowDate", descending=True, limit=2)) == ["b", "c"]


def test_replace_is_upsert(db):
    db.replace("students", "s1", {"name": "Ayşe"})
    db.replace("students", "s1", {"name": "Ayşe", "surname": "Yılmaz"})
    assert db.get_all("students") == [{"id": "s1", "name": "Ayşe", "surname": "Yılmaz"}]


def test_update_merges_fields(db):
    db.replace("bookCopies", "c1", {"barcode": "LIB001001", "isAvailable": True})
    db.update("bookCopies", "c1", {"isAvailable": False})
    assert db.get("bookCopies", "c1") == {"id": "c1", "barcode": "LIB001001", "isAvailable": False}


def test_update_missing_document_fails(db):
    with pytest.raises(StoreFailure):
        db.update("bookCopies", "yok", {"isAvailable": False})


def test_delete(db):
    db.replace("bookCopies", "c1", {"barcode": "LIB001001"})
    db.delete("bookCopies", "c1")
    assert db.get_all("bookCopies") == []


def test_data_survives_new_instance(tmp_path):
    path = str(tmp_path / "docs.db")
    SQLiteDocumentStore(path).replace("students", "s1", {"name": "Ayşe"})
    assert SQLiteDocumentStore(path).get("students", "s1")["name"] == "Ayşe"
