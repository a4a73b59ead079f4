from datetime import datetime, timedelta

import pytest

from libraryau.access import Operator, StaticNetwork, UserRole
from libraryau.models import BookCopy, BookTemplate, Student
from libraryau.services import create_services
from libraryau.store import BOOK_COPIES, BOOK_TEMPLATES, STUDENTS, SQLiteDocumentStore

NOW = datetime(2024, 3, 15, 10, 0, 0)


class FakeClock:
    """Testlerde ileri sarılabilen saat."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


def seed_library(store) -> None:
    """İki öğrenci, üç kitap ve beş kopya."""
    store.replace(STUDENTS, "s1", Student("Ayşe", "Yılmaz", "12345678", "ayse@example.com").to_dict())
    store.replace(STUDENTS, "s2", Student("Mehmet", "Demir", "87654321", "mehmet@example.com").to_dict())

    store.replace(BOOK_TEMPLATES, "t1", BookTemplate(
        "Suç ve Ceza", "Dostoyevski", "9789750719387", publisher="İş Bankası", category="Roman",
    ).to_dict())
    store.replace(BOOK_TEMPLATES, "t2", BookTemplate(
        "İstanbul Hatırası", "Ahmet Ümit", "9789750522321", publisher="Everest", category="Polisiye",
    ).to_dict())
    store.replace(BOOK_TEMPLATES, "t3", BookTemplate(
        "Kürk Mantolu Madonna", "Sabahattin Ali", "9789753638029", publisher="YKY", category="Roman",
    ).to_dict())

    copies = [
        ("c1", 1, 1, "t1"),
        ("c2", 1, 2, "t1"),
        ("c3", 2, 1, "t2"),
        ("c4", 3, 1, "t3"),
        ("c5", 3, 2, "t3"),
    ]
    for copy_id, book_id, number, template_id in copies:
        copy = BookCopy(book_id, number, f"LIB{book_id:03d}{number:03d}", template_id)
        store.replace(BOOK_COPIES, copy_id, copy.to_dict())


@pytest.fixture
def clock():
    return FakeClock(NOW)


@pytest.fixture
def store(tmp_path):
    # Her test için ayrı veritabanı dosyası
    return SQLiteDocumentStore(str(tmp_path / "library.db"))


@pytest.fixture
def network():
    return StaticNetwork(online=True)


@pytest.fixture
def operator():
    return Operator(role=UserRole.ADMIN)


@pytest.fixture
def services(store, operator, network, clock):
    seed_library(store)
    return create_services(store=store, access=operator, network=network, clock=clock)


@pytest.fixture
def lending(services):
    return services.lending


@pytest.fixture
def catalog(services):
    return services.catalog
