"""Katalog, öğrenci ve ödünç listelerinde Türkçe duyarlı arama."""

import re
import unicodedata
from datetime import datetime
from enum import Enum
from typing import Iterable, List, Optional

from . import rules
from .models import BookTemplate, BorrowedBook, Student
from .snapshot import LibrarySnapshot

ALL = "all"

_TURKISH_UPPER = str.maketrans({"İ": "i", "I": "ı"})
_TURKISH_ASCII = str.maketrans({"ı": "i", "ş": "s", "ğ": "g", "ü": "u", "ö": "o", "ç": "c"})
_WHITESPACE = re.compile(r"\s+")


def normalize(text: Optional[str]) -> str:
    """Arama için normalleştirir: ``"İSTANBUL"`` ve ``"istanbul"`` eşleşir."""
    if not text:
        return ""
    # Türkçe büyük/küçük harf kuralları lower()'dan önce uygulanmalı
    result = text.translate(_TURKISH_UPPER).lower()
    result = result.translate(_TURKISH_ASCII)
    result = unicodedata.normalize("NFD", result)
    result = "".join(ch for ch in result if not unicodedata.combining(ch))
    return _WHITESPACE.sub(" ", result).strip()


def _matches(term: str, *fields: Optional[str]) -> bool:
    return any(term in normalize(f) for f in fields)


def filter_templates(
    templates: Iterable[BookTemplate],
    search_text: str = "",
    category: str = ALL,
    include_deleted: bool = False,
) -> List[BookTemplate]:
    result = [t for t in templates if include_deleted or not t.is_deleted]
    if category and category != ALL:
        result = [t for t in result if t.category == category]
    term = normalize(search_text)
    if term:
        result = [t for t in result if _matches(term, t.title, t.author, t.isbn, t.publisher)]
    return sorted(result, key=lambda t: normalize(t.title))


def filter_students(
    students: Iterable[Student],
    search_text: str = "",
    include_deleted: bool = False,
) -> List[Student]:
    result = [s for s in students if include_deleted or not s.is_deleted]
    term = normalize(search_text)
    if term:
        result = [
            s for s in result
            if _matches(term, s.name, s.surname, s.full_name, s.student_number, s.email)
        ]
    return sorted(result, key=lambda s: normalize(s.name))


class LoanStatusFilter(str, Enum):
    ALL = "all"
    ACTIVE = "active"
    RETURNED = "returned"
    OVERDUE = "overdue"

    @property
    def display_name(self) -> str:
        return {
            LoanStatusFilter.ALL: "Tümü",
            LoanStatusFilter.ACTIVE: "Ödünçte",
            LoanStatusFilter.RETURNED: "İade Edildi",
            LoanStatusFilter.OVERDUE: "Süresi Geçti",
        }[self]


def _status_matches(loan: BorrowedBook, status: LoanStatusFilter, now: datetime) -> bool:
    if status is LoanStatusFilter.ACTIVE:
        return not loan.is_returned
    if status is LoanStatusFilter.RETURNED:
        return loan.is_returned
    if status is LoanStatusFilter.OVERDUE:
        return rules.is_overdue(loan.due_date, loan.is_returned, now)
    return True


def filter_loans(
    loans: Iterable[BorrowedBook],
    search_text: str,
    status: LoanStatusFilter,
    snapshot: LibrarySnapshot,
    now: Optional[datetime] = None,
) -> List[BorrowedBook]:
    """Durum ve metin filtresi; öğrenci, kitap ve barkod üzerinden arar."""
    now = now or datetime.now()
    status = LoanStatusFilter(status)
    result = [l for l in loans if _status_matches(l, status, now)]

    term = normalize(search_text)
    if term:
        matched = []
        for loan in result:
            details = snapshot.loan_details(loan)
            fields = []
            if details.student:
                fields += [details.student.name, details.student.surname, details.student.student_number]
            if details.template:
                fields += [details.template.title, details.template.author]
            if details.copy:
                fields.append(details.copy.barcode)
            if _matches(term, *fields):
                matched.append(loan)
        result = matched
    return sorted(result, key=lambda l: l.borrow_date, reverse=True)


def categories(templates: Iterable[BookTemplate]) -> List[str]:
    distinct = {t.category for t in templates if t.category and not t.is_deleted}
    return [ALL] + sorted(distinct)
