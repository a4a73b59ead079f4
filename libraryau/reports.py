"""Snapshot üzerinden türetilen görünümler ve raporlar.

Hepsi saf fonksiyonlardır: snapshot ve ``now`` değeri alır, hiçbir şey yazmaz.
Gecikme durumu saklanmaz, her çağrıda saatten hesaplanır.
"""

from collections import Counter
from datetime import datetime
from typing import List, Optional, Tuple

from . import rules
from .models import BookTemplate, BorrowedBook, BorrowingStatistics, MonthlyReport, Student
from .snapshot import LibrarySnapshot


def active_loans(snapshot: LibrarySnapshot) -> List[BorrowedBook]:
    return [l for l in snapshot.loans if not l.is_returned]


def overdue_loans(snapshot: LibrarySnapshot, now: datetime) -> List[BorrowedBook]:
    return [l for l in snapshot.loans if rules.is_overdue(l.due_date, l.is_returned, now)]


def statistics(snapshot: LibrarySnapshot, now: datetime) -> BorrowingStatistics:
    returned = sum(1 for l in snapshot.loans if l.is_returned)
    return BorrowingStatistics(
        total=len(snapshot.loans),
        active=len(snapshot.loans) - returned,
        returned=returned,
        overdue=len(overdue_loans(snapshot, now)),
    )


def most_borrowed_templates(
    snapshot: LibrarySnapshot, limit: int = 5
) -> List[Tuple[BookTemplate, int]]:
    """En çok ödünç alınan şablonlar, çoktan aza.

    Eşit sayılar ilk görülme sırasını korur. Çözülemeyen şablonlar sınır
    uygulanmadan önce elenir.
    """
    counts: Counter = Counter()
    for loan in snapshot.loans:
        copy = snapshot.copy(loan.book_copy_id)
        if copy is not None:
            counts[copy.book_template_id] += 1

    ranked = []
    for template_id, count in sorted(counts.items(), key=lambda item: item[1], reverse=True):
        template = snapshot.template(template_id)
        if template is not None:
            ranked.append((template, count))
    return ranked[:limit]


def most_active_students(snapshot: LibrarySnapshot, limit: int = 5) -> List[Tuple[Student, int]]:
    counts: Counter = Counter(l.student_id for l in snapshot.loans)
    ranked = []
    for student_id, count in sorted(counts.items(), key=lambda item: item[1], reverse=True):
        student = snapshot.student(student_id)
        if student is not None:
            ranked.append((student, count))
    return ranked[:limit]


def _in_month(value: Optional[datetime], month: int, year: int) -> bool:
    return value is not None and value.month == month and value.year == year


def monthly_report(snapshot: LibrarySnapshot, month: int, year: int) -> MonthlyReport:
    """``month`` 1-12 aralığında; ay içinde yapılan ödünç ve iadeleri sayar."""
    if not 1 <= month <= 12:
        raise ValueError(f"Ay 1 ile 12 arasında olmalı, {month} verildi.")
    borrows = [l for l in snapshot.loans if _in_month(l.borrow_date, month, year)]
    returns = [l for l in snapshot.loans if _in_month(l.return_date, month, year)]
    return MonthlyReport(
        month=month,
        year=year,
        total_borrows=len(borrows),
        total_returns=len(returns),
        active_borrows=sum(1 for l in borrows if not l.is_returned),
    )


def upcoming_due_loans(
    snapshot: LibrarySnapshot, now: datetime, days: Optional[int] = None
) -> List[BorrowedBook]:
    loans = [l for l in snapshot.loans if rules.is_due_soon(l, now, days)]
    return sorted(loans, key=lambda l: l.due_date)


def student_loans(
    snapshot: LibrarySnapshot, student_id: str
) -> Tuple[List[BorrowedBook], List[BorrowedBook]]:
    """(aktif ödünçler teslim tarihine göre, geçmiş iade tarihine göre yeniden eskiye)"""
    mine = [l for l in snapshot.loans if l.student_id == student_id]
    active = sorted((l for l in mine if not l.is_returned), key=lambda l: l.due_date)
    history = sorted(
        (l for l in mine if l.is_returned),
        key=lambda l: l.return_date or datetime.min,
        reverse=True,
    )
    return active, history
