import logging
import threading
import time
from datetime import timedelta

import pytest

from libraryau import rules
from libraryau.errors import (
    AlreadyReturned,
    CopyUnavailable,
    DuplicateTitle,
    InvalidStudent,
    LimitExceeded,
    NotFound,
    OfflineError,
    PermissionDenied,
    StoreFailure,
)
from libraryau.lending import search_copy_by_barcode, search_student, validate_borrow
from libraryau.models import BookCopy, BookTemplate, Deleted, Student
from libraryau.services import create_services
from libraryau.store import BOOK_COPIES, BORROWED_BOOKS


def test_borrow_end_to_end(lending, store, clock):
    start = clock()
    loan = lending.lend("12345678", "LIB001001")

    assert loan.id
    assert loan.student_id == "s1"
    assert loan.book_copy_id == "c1"
    assert loan.borrow_date == start
    assert loan.due_date == start + timedelta(days=rules.DEFAULT_BORROW_DAYS)
    assert not loan.is_returned

    assert lending.snapshot.copy("c1").is_available is False
    assert store.get(BOOK_COPIES, "c1")["isAvailable"] is False
    doc = store.get(BORROWED_BOOKS, loan.id)
    assert doc["studentId"] == "s1"
    assert doc["isReturned"] is False

    stats = lending.statistics()
    assert (stats.total, stats.active, stats.returned, stats.overdue) == (1, 1, 0, 0)


def test_lend_trims_identifiers(lending):
    loan = lending.lend("  12345678 ", " LIB002001 ")
    assert loan.book_copy_id == "c3"


def test_custom_borrow_days(lending, clock):
    loan = lending.lend("12345678", "LIB001001", borrow_days=7)
    assert loan.due_date == clock() + timedelta(days=7)


@pytest.mark.parametrize("days", [0, -5])
def test_borrow_days_must_be_positive(lending, store, days):
    with pytest.raises(ValueError):
        lending.lend("12345678", "LIB001001", borrow_days=days)
    assert store.get_all(BORROWED_BOOKS) == []
    assert lending.overdue_loans() == []


def test_borrow_rejects_template_of_another_copy(lending, store):
    copy = lending.snapshot.copy("c1")
    other = lending.snapshot.template("t2")
    with pytest.raises(NotFound):
        lending.borrow(lending.snapshot.student("s1"), copy, other)
    assert store.get_all(BORROWED_BOOKS) == []


def test_concurrent_borrows_of_one_copy(lending, store, monkeypatch):
    create_loan = lending.repository.create_loan

    def slow_create(loan):
        # İkinci istek denetime bu yazma sürerken girer
        time.sleep(0.2)
        return create_loan(loan)

    monkeypatch.setattr(lending.repository, "create_loan", slow_create)
    errors = []

    def attempt(number):
        try:
            lending.lend(number, "LIB002001")
        except CopyUnavailable as e:
            errors.append(e)

    threads = [threading.Thread(target=attempt, args=(n,)) for n in ("12345678", "87654321")]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    open_loans = [d for d in store.get_all(BORROWED_BOOKS) if d["bookCopyId"] == "c3" and not d["isReturned"]]
    assert len(open_loans) == 1
    assert len(errors) == 1


def test_duplicate_title_is_rejected(lending, store):
    lending.lend("12345678", "LIB001001")
    with pytest.raises(DuplicateTitle):
        lending.lend("12345678", "LIB001002")
    assert len(store.get_all(BORROWED_BOOKS)) == 1
    assert store.get(BOOK_COPIES, "c2")["isAvailable"] is True


def test_other_student_can_take_second_copy(lending):
    lending.lend("12345678", "LIB001001")
    loan = lending.lend("87654321", "LIB001002")
    assert loan.student_id == "s2"


def test_copy_on_loan_is_unavailable(lending):
    lending.lend("12345678", "LIB001001")
    with pytest.raises(CopyUnavailable):
        lending.lend("87654321", "LIB001001")


def test_loan_limit(lending, monkeypatch):
    monkeypatch.setattr(rules, "MAX_BOOKS_PER_STUDENT", 3)
    for code in ("LIB001001", "LIB002001", "LIB003001"):
        lending.lend("12345678", code)

    # Limit, aynı kitap kuralından önce denetlenir
    with pytest.raises(LimitExceeded):
        lending.lend("12345678", "LIB001002")
    assert len(lending.snapshot.active_loans_for("s1")) == 3


def test_unknown_student_or_barcode(lending):
    with pytest.raises(NotFound):
        lending.lend("00000000", "LIB001001")
    with pytest.raises(NotFound):
        lending.lend("12345678", "LIB999999")


def test_copy_with_missing_template_is_not_found(lending, store):
    store.replace(BOOK_COPIES, "orphan", BookCopy(9, 1, "LIB009001", "gone").to_dict())
    lending.refresh()
    with pytest.raises(NotFound):
        lending.lend("12345678", "LIB009001")


def test_deleted_records_are_not_found(lending, clock):
    lending.snapshot.student("s2").lifecycle = Deleted(at=clock())
    lending.snapshot.copy("c3").lifecycle = Deleted(at=clock())
    with pytest.raises(NotFound):
        lending.lend("87654321", "LIB001001")
    with pytest.raises(NotFound):
        lending.lend("12345678", "LIB002001")


def test_offline_fails_fast(lending, network, store):
    network.online = False
    with pytest.raises(OfflineError):
        lending.lend("12345678", "LIB001001")
    assert store.get_all(BORROWED_BOOKS) == []


def test_permission_required(lending, operator, store):
    operator.is_active = False
    with pytest.raises(PermissionDenied):
        lending.lend("12345678", "LIB001001")
    assert store.get_all(BORROWED_BOOKS) == []


def test_offline_is_checked_before_permission(lending, operator, network):
    operator.is_active = False
    network.online = False
    with pytest.raises(OfflineError):
        lending.lend("12345678", "LIB001001")


def test_return_flow(lending, store, clock):
    loan = lending.lend("12345678", "LIB001001")
    start = clock()
    clock.advance(days=3)

    returned = lending.return_loan(loan)

    assert returned.is_returned
    assert returned.return_date == start + timedelta(days=3)
    assert lending.snapshot.copy("c1").is_available is True
    assert store.get(BOOK_COPIES, "c1")["isAvailable"] is True
    assert store.get(BORROWED_BOOKS, loan.id)["isReturned"] is True

    clock.advance(days=2)
    with pytest.raises(AlreadyReturned):
        lending.return_loan(loan)
    # İkinci iade girişimi iade tarihini değiştirmez
    assert loan.return_date == start + timedelta(days=3)
    assert store.get(BORROWED_BOOKS, loan.id)["returnDate"] == (start + timedelta(days=3)).isoformat()

    stats = lending.statistics()
    assert (stats.active, stats.returned, stats.return_rate) == (0, 1, 100.0)


def test_returned_copy_can_be_borrowed_again(lending):
    loan = lending.lend("12345678", "LIB001001")
    lending.return_loan(loan)
    again = lending.lend("87654321", "LIB001001")
    assert again.book_copy_id == "c1"


def test_return_by_barcode(lending):
    lending.lend("12345678", "LIB002001")
    loan = lending.return_by_barcode("LIB002001")
    assert loan.is_returned
    with pytest.raises(AlreadyReturned):
        lending.return_by_barcode("LIB002001")


def test_return_by_unknown_id(lending):
    with pytest.raises(NotFound):
        lending.return_by_id("nope")


def test_failed_copy_write_keeps_loan(lending, store, monkeypatch):
    def fail(copy_id, is_available):
        raise StoreFailure("disk dolu")

    monkeypatch.setattr(lending.repository, "set_copy_availability", fail)
    with pytest.raises(StoreFailure) as exc:
        lending.lend("12345678", "LIB001001")

    assert "LIB001001" in exc.value.message
    assert len(store.get_all(BORROWED_BOOKS)) == 1
    assert store.get(BOOK_COPIES, "c1")["isAvailable"] is True

    monkeypatch.undo()
    lending.refresh()
    assert [c.id for c in lending.snapshot.availability_mismatches()] == ["c1"]

    repaired = lending.repair_availability()
    assert [c.id for c in repaired] == ["c1"]
    assert store.get(BOOK_COPIES, "c1")["isAvailable"] is False
    assert lending.snapshot.availability_mismatches() == []


def test_failed_copy_write_on_return(lending, store, monkeypatch):
    loan = lending.lend("12345678", "LIB001001")

    def fail(copy_id, is_available):
        raise StoreFailure("disk dolu")

    monkeypatch.setattr(lending.repository, "set_copy_availability", fail)
    with pytest.raises(StoreFailure):
        lending.return_loan(loan)
    assert store.get(BORROWED_BOOKS, loan.id)["isReturned"] is True
    assert store.get(BOOK_COPIES, "c1")["isAvailable"] is False


def test_refresh_reports_mismatches(lending, store, caplog):
    doc = store.get(BOOK_COPIES, "c4")
    doc["isAvailable"] = False
    store.replace(BOOK_COPIES, "c4", doc)

    with caplog.at_level(logging.WARNING, logger="libraryau.lending"):
        lending.refresh()

    assert "LIB003001" in caplog.text
    # Okuma sırasında bayrak değiştirilmez
    assert lending.snapshot.copy("c4").is_available is False


def test_refresh_keeps_snapshot_on_failure(lending, monkeypatch):
    before = lending.snapshot

    def fail(now=None):
        raise StoreFailure("bağlantı koptu")

    monkeypatch.setattr(lending.repository, "load_snapshot", fail)
    with pytest.raises(StoreFailure):
        lending.refresh()
    assert lending.snapshot is before


def test_refresh_requires_online(lending, network):
    network.online = False
    with pytest.raises(OfflineError):
        lending.refresh()
    # Çevrimdışıyken görünümler son snapshot üzerinden çalışır
    assert lending.statistics().total == 0


def test_lifecycles_do_not_share_snapshots(lending, store, operator, network, clock):
    other = create_services(store=store, access=operator, network=network, clock=clock).lending
    lending.lend("12345678", "LIB001001")
    assert other.snapshot.loans == []
    other.refresh()
    assert len(other.snapshot.loans) == 1


def test_overdue_is_derived_from_clock(lending, clock):
    lending.lend("12345678", "LIB001001")

    clock.advance(days=rules.DEFAULT_BORROW_DAYS)
    assert lending.overdue_loans() == []

    clock.advance(minutes=1)
    assert len(lending.overdue_loans()) == 1
    assert lending.statistics().overdue == 1


# ------------------------- Saf fonksiyonlar ------------------------- #
def _student(student_id="s1"):
    return Student("Ayşe", "Yılmaz", "12345678", "ayse@example.com", id=student_id)


def test_search_helpers():
    roster = [_student(), Student("Ali", "Kaya", "11112222", "ali@example.com", id="s3")]
    assert search_student(" 11112222 ", roster).id == "s3"
    assert search_student("", roster) is None
    assert search_student("1111222", roster) is None

    copies = [BookCopy(1, 1, "LIB001001", "t1", id="c1")]
    assert search_copy_by_barcode("LIB001001 ", copies).id == "c1"
    assert search_copy_by_barcode("LIB00100", copies) is None


def test_validate_borrow_order():
    template = BookTemplate("Suç ve Ceza", "Dostoyevski", "9789750719387", id="t1")
    busy = BookCopy(1, 1, "LIB001001", "t1", is_available=False, id="c1")

    # İlk ihlal kazanır
    with pytest.raises(InvalidStudent):
        validate_borrow(_student(student_id=None), busy, template, [], [busy])
    with pytest.raises(CopyUnavailable):
        validate_borrow(_student(), busy, template, [], [busy])

    free = BookCopy(1, 2, "LIB001002", "t1", id="c2")
    no_id = BookTemplate("Adsız", "Yazar", "9789750719387")
    with pytest.raises(NotFound):
        validate_borrow(_student(), free, no_id, [], [free])
    validate_borrow(_student(), free, template, [], [free, busy])


def test_views_follow_snapshot(lending, clock):
    first = lending.lend("12345678", "LIB001001")
    clock.advance(days=1)
    second = lending.lend("12345678", "LIB002001")
    lending.return_loan(first)

    assert lending.active_loans() == [second]
    active, history = lending.student_loans("s1")
    assert (active, history) == ([second], [first])
    assert lending.monthly_report().total_borrows == 2
    assert {t.id for t, _ in lending.most_borrowed_templates()} == {"t1", "t2"}
    assert lending.upcoming_due_loans(days=20) == [second]
