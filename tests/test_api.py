import pytest
from fastapi.testclient import TestClient

from libraryau.api import app, get_services
from libraryau.config import settings


@pytest.fixture
def client(services):
    app.dependency_overrides[get_services] = lambda: services
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def headers():
    return {"X-API-Key": settings.api_key}


def _borrow(client, headers, number="12345678", code="LIB001001"):
    return client.post("/loans/borrow", json={"student_number": number, "barcode": code}, headers=headers)


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "healthy"
    assert body["db"] is True
    assert body["total_loans"] == 0


def test_borrow_requires_api_key(client):
    response = client.post("/loans/borrow", json={"student_number": "12345678", "barcode": "LIB001001"},
                           headers={"X-API-Key": "yanlis"})
    assert response.status_code == 403


def test_borrow_and_list(client, headers):
    response = _borrow(client, headers)
    assert response.status_code == 201
    loan = response.json()
    assert loan["barcode"] == "LIB001001"
    assert loan["student"] == "Ayşe Yılmaz"
    assert loan["status"] == "active"

    rows = client.get("/loans", params={"status": "active"}).json()
    assert [r["id"] for r in rows] == [loan["id"]]
    assert client.get("/loans", params={"q": "mehmet"}).json() == []


def test_business_errors_map_to_status(client, headers):
    _borrow(client, headers)
    response = _borrow(client, headers, code="LIB001002")
    assert response.status_code == 409
    assert response.json()["code"] == "duplicate_title"

    response = _borrow(client, headers, number="00000000")
    assert response.status_code == 404
    assert response.json()["code"] == "not_found"


def test_offline_maps_to_503(client, headers, network):
    network.online = False
    response = _borrow(client, headers)
    assert response.status_code == 503
    assert response.json()["code"] == "offline"


def test_return_loan(client, headers):
    loan_id = _borrow(client, headers).json()["id"]
    response = client.post(f"/loans/{loan_id}/return", headers=headers)
    assert response.status_code == 200
    assert response.json()["status"] == "returned"

    again = client.post(f"/loans/{loan_id}/return", headers=headers)
    assert again.status_code == 409
    assert client.post("/loans/yok/return", headers=headers).status_code == 404


def test_statistics_and_reports(client, headers):
    _borrow(client, headers)
    stats = client.get("/loans/statistics").json()
    assert (stats["total"], stats["active"], stats["overdue"]) == (1, 1, 0)

    report = client.get("/reports/monthly", params={"month": 3, "year": 2024}).json()
    assert report["month_name"] == "Mart"
    assert report["total_borrows"] == 1

    ranking = client.get("/reports/most-borrowed").json()
    assert ranking == [{"id": "t1", "name": "Suç ve Ceza", "count": 1}]
    assert client.get("/reports/most-active").json()[0]["id"] == "s1"
    assert client.get("/loans/overdue").json() == []
    assert client.get("/loans/upcoming", params={"days": 20}).json()[0]["barcode"] == "LIB001001"


def test_books_and_categories(client):
    books = client.get("/books", params={"q": "istanbul"}).json()
    assert [b["id"] for b in books] == ["t2"]
    assert books[0]["available"] == 1
    assert client.get("/books/categories").json() == ["all", "Polisiye", "Roman"]


def test_add_book(client, headers):
    payload = {
        "title": "Tutunamayanlar", "author": "Oğuz Atay", "isbn": "9789754700114",
        "publisher": "İletişim", "copy_count": 2,
    }
    response = client.post("/books", json=payload, headers=headers)
    assert response.status_code == 201
    body = response.json()
    assert [c["barcode"] for c in body["copies"]] == ["LIB004001", "LIB004002"]
    template_id = body["book"]["id"]

    response = client.post(f"/books/{template_id}/copies", json={"count": 1}, headers=headers)
    assert response.status_code == 201
    assert response.json()[0]["barcode"] == "LIB004003"

    bad = client.post("/books", json={**payload, "isbn": "123"}, headers=headers)
    assert bad.status_code == 400
    assert client.post("/books/yok/copies", json={"count": 1}, headers=headers).status_code == 404


def test_students(client, headers):
    payload = {"name": "Elif", "surname": "Şahin", "student_number": "24681357", "email": "Elif@Example.com"}
    response = client.post("/students", json=payload, headers=headers)
    assert response.status_code == 201
    assert response.json()["email"] == "elif@example.com"

    duplicate = client.post("/students", json=payload, headers=headers)
    assert duplicate.status_code == 400
    assert len(client.get("/students").json()) == 3


@pytest.mark.parametrize("value,valid,kind,book_id", [
    ("LIB012003", True, "lib", 12),
    ("9789750719387", True, "isbn", None),
    ("LIB12", False, None, None),
])
def test_check_barcode(client, value, valid, kind, book_id):
    body = client.get(f"/barcodes/{value}").json()
    assert (body["valid"], body["type"], body["book_id"]) == (valid, kind, book_id)


def test_student_loans(client, headers):
    loan_id = _borrow(client, headers).json()["id"]
    _borrow(client, headers, code="LIB002001")
    client.post(f"/loans/{loan_id}/return", headers=headers)

    body = client.get("/students/s1/loans").json()
    assert [l["barcode"] for l in body["active"]] == ["LIB002001"]
    assert [l["id"] for l in body["history"]] == [loan_id]
    assert client.get("/students/yok/loans").status_code == 404
