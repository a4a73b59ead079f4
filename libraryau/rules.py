"""Ödünç alma kuralları. Saf fonksiyonlar; depo ya da saat erişimi yoktur."""

from datetime import datetime, timedelta
from enum import Enum
from typing import Iterable, Optional

from .config import settings
from .models import BookCopy, BorrowedBook

MAX_BOOKS_PER_STUDENT = settings.max_books_per_student
DEFAULT_BORROW_DAYS = settings.default_borrow_days
WARNING_DAYS_BEFORE_DUE = settings.warning_days_before_due


class LoanStatus(str, Enum):
    ACTIVE = "active"
    OVERDUE = "overdue"
    RETURNED = "returned"

    @property
    def label(self) -> str:
        return {
            LoanStatus.ACTIVE: "Aktif",
            LoanStatus.OVERDUE: "Gecikmiş",
            LoanStatus.RETURNED: "İade Edildi",
        }[self]


def can_borrow_book(active_count: int) -> bool:
    return active_count < MAX_BOOKS_PER_STUDENT


def can_borrow_same_book(
    student_active_loans: Iterable[BorrowedBook],
    target_template_id: str,
    all_copies: Iterable[BookCopy],
) -> bool:
    """Öğrencinin elinde aynı şablondan bir kopya varsa False.

    Kopyası bulunamayan ödünç kaydı eşleşme sayılmaz.
    """
    copies_by_id = {c.id: c for c in all_copies}
    for loan in student_active_loans:
        copy = copies_by_id.get(loan.book_copy_id)
        if copy is not None and copy.book_template_id == target_template_id:
            return False
    return True


def due_date(borrow_date: datetime, borrow_days: int = DEFAULT_BORROW_DAYS) -> datetime:
    return borrow_date + timedelta(days=borrow_days)


def is_overdue(due: datetime, is_returned: bool, now: datetime) -> bool:
    # Teslim günü anının kendisi henüz gecikme değildir
    return not is_returned and now > due


def remaining_days(due: datetime, now: datetime) -> int:
    return max((due.date() - now.date()).days, 0)


def overdue_days(due: datetime, now: datetime) -> int:
    return max((now.date() - due.date()).days, 0)


def loan_status(loan: BorrowedBook, now: datetime) -> LoanStatus:
    if loan.is_returned:
        return LoanStatus.RETURNED
    if is_overdue(loan.due_date, loan.is_returned, now):
        return LoanStatus.OVERDUE
    return LoanStatus.ACTIVE


def is_due_soon(loan: BorrowedBook, now: datetime, days: Optional[int] = None) -> bool:
    """Açık, gecikmemiş ve ``days`` gün içinde teslim edilecek ödünçler."""
    window = WARNING_DAYS_BEFORE_DUE if days is None else days
    if loan_status(loan, now) is not LoanStatus.ACTIVE:
        return False
    return loan.due_date <= now + timedelta(days=window)
