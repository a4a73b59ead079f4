from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, Optional, Union


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Belgelerde saklanan ISO-8601 metnini ya da datetime değerini kabul eder."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value))


def format_timestamp(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


# ------------------------- Yumuşak silme ------------------------- #
@dataclass(frozen=True)
class Active:
    """Kayıt katalogda görünür."""


@dataclass(frozen=True)
class Deleted:
    """Kayıt ``at`` anında yumuşak silindi; geri alınabilir."""

    at: datetime


Lifecycle = Union[Active, Deleted]
ACTIVE = Active()


def lifecycle_to_fields(lifecycle: Lifecycle) -> Dict[str, Any]:
    if isinstance(lifecycle, Deleted):
        return {"isDeleted": True, "deletedAt": format_timestamp(lifecycle.at)}
    return {"isDeleted": False, "deletedAt": None}


def lifecycle_from_fields(data: Dict[str, Any]) -> Lifecycle:
    if not data.get("isDeleted"):
        return ACTIVE
    # Eski belgelerde bayrak zaman damgası olmadan bulunabilir
    at = parse_timestamp(data.get("deletedAt")) or parse_timestamp(data.get("createdAt")) or datetime.min
    return Deleted(at=at)


class _SoftDeletable:
    lifecycle: Lifecycle

    @property
    def is_deleted(self) -> bool:
        return isinstance(self.lifecycle, Deleted)

    @property
    def deleted_at(self) -> Optional[datetime]:
        return self.lifecycle.at if isinstance(self.lifecycle, Deleted) else None


# ------------------------- Katalog ------------------------- #
@dataclass
class BookTemplate(_SoftDeletable):
    """Bir eserin katalog kaydı; fiziksel kopyalar buna bağlanır."""

    title: str
    author: str
    isbn: str
    publisher: str = ""
    editor: str = ""
    category: str = ""
    description: str = ""
    id: Optional[str] = None
    created_at: Optional[datetime] = None
    lifecycle: Lifecycle = ACTIVE

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "title": self.title,
            "author": self.author,
            "isbn": self.isbn,
            "publisher": self.publisher,
            "editor": self.editor,
            "category": self.category,
            "description": self.description,
            "createdAt": format_timestamp(self.created_at),
        }
        data.update(lifecycle_to_fields(self.lifecycle))
        return data

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "BookTemplate":
        return BookTemplate(
            id=data.get("id"),
            title=data.get("title", ""),
            author=data.get("author", ""),
            isbn=data.get("isbn", ""),
            publisher=data.get("publisher", ""),
            editor=data.get("editor", ""),
            category=data.get("category", ""),
            description=data.get("description", ""),
            created_at=parse_timestamp(data.get("createdAt")),
            lifecycle=lifecycle_from_fields(data),
        )


@dataclass
class BookCopy(_SoftDeletable):
    """Şablonun ayrı ayrı ödünç verilebilen fiziksel kopyası."""

    book_id: int
    copy_number: int
    barcode: str
    book_template_id: str
    is_available: bool = True
    id: Optional[str] = None
    created_at: Optional[datetime] = None
    lifecycle: Lifecycle = ACTIVE

    @property
    def status_text(self) -> str:
        return "Müsait" if self.is_available else "Ödünçte"

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "bookId": self.book_id,
            "copyNumber": self.copy_number,
            "barcode": self.barcode,
            "isAvailable": self.is_available,
            "bookTemplateId": self.book_template_id,
            "createdAt": format_timestamp(self.created_at),
        }
        data.update(lifecycle_to_fields(self.lifecycle))
        return data

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "BookCopy":
        return BookCopy(
            id=data.get("id"),
            book_id=int(data.get("bookId", 0)),
            copy_number=int(data.get("copyNumber", 0)),
            barcode=data.get("barcode", ""),
            is_available=bool(data.get("isAvailable", True)),
            book_template_id=data.get("bookTemplateId", ""),
            created_at=parse_timestamp(data.get("createdAt")),
            lifecycle=lifecycle_from_fields(data),
        )


# ------------------------- Öğrenciler ------------------------- #
@dataclass
class Student(_SoftDeletable):
    name: str
    surname: str
    student_number: str
    email: str
    id: Optional[str] = None
    created_at: Optional[datetime] = None
    lifecycle: Lifecycle = ACTIVE

    @property
    def full_name(self) -> str:
        return f"{self.name} {self.surname}"

    @property
    def display_text(self) -> str:
        return f"{self.full_name} - {self.student_number}"

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "name": self.name,
            "surname": self.surname,
            "studentNumber": self.student_number,
            "email": self.email,
            "createdAt": format_timestamp(self.created_at),
        }
        data.update(lifecycle_to_fields(self.lifecycle))
        return data

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "Student":
        return Student(
            id=data.get("id"),
            name=data.get("name", ""),
            surname=data.get("surname", ""),
            student_number=str(data.get("studentNumber", "")),
            email=data.get("email", ""),
            created_at=parse_timestamp(data.get("createdAt")),
            lifecycle=lifecycle_from_fields(data),
        )


# ------------------------- Ödünç ------------------------- #
@dataclass
class BorrowedBook:
    """Ödünç kaydı: bir öğrencinin elindeki bir kopya.

    ``due_date`` değeri ``borrow_date`` ve ``borrow_days`` üzerinden türetilir;
    depo sıralama yapabilsin diye belgeye de yazılır.
    """

    book_copy_id: str
    student_id: str
    borrow_date: datetime
    borrow_days: int
    is_returned: bool = False
    return_date: Optional[datetime] = None
    id: Optional[str] = None

    @property
    def due_date(self) -> datetime:
        return self.borrow_date + timedelta(days=self.borrow_days)

    def mark_returned(self, when: datetime) -> None:
        self.is_returned = True
        self.return_date = when

    def to_dict(self) -> Dict[str, Any]:
        return {
            "bookCopyId": self.book_copy_id,
            "studentId": self.student_id,
            "borrowDate": format_timestamp(self.borrow_date),
            "borrowDays": self.borrow_days,
            "dueDate": format_timestamp(self.due_date),
            "isReturned": self.is_returned,
            "returnDate": format_timestamp(self.return_date),
        }

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "BorrowedBook":
        borrow_date = parse_timestamp(data.get("borrowDate")) or datetime.min
        borrow_days = data.get("borrowDays")
        if borrow_days is None:
            # Süresiz yazılmış kayıtlarda yalnızca teslim tarihi bulunur
            due = parse_timestamp(data.get("dueDate"))
            borrow_days = (due.date() - borrow_date.date()).days if due else 0
        return BorrowedBook(
            id=data.get("id"),
            book_copy_id=data.get("bookCopyId", ""),
            student_id=data.get("studentId", ""),
            borrow_date=borrow_date,
            borrow_days=int(borrow_days),
            is_returned=bool(data.get("isReturned", False)),
            return_date=parse_timestamp(data.get("returnDate")),
        )


@dataclass
class LoanDetails:
    """Ödünç kaydı ve bağlı olduğu kayıtlar; herhangi biri eksik olabilir."""

    loan: BorrowedBook
    student: Optional[Student] = None
    copy: Optional[BookCopy] = None
    template: Optional[BookTemplate] = None

    @property
    def book_title(self) -> str:
        return self.template.title if self.template else "Bilinmeyen Kitap"

    @property
    def student_name(self) -> str:
        return self.student.full_name if self.student else "Bilinmeyen Öğrenci"

    @property
    def barcode(self) -> str:
        return self.copy.barcode if self.copy else "-"


@dataclass
class BorrowingStatistics:
    total: int = 0
    active: int = 0
    returned: int = 0
    overdue: int = 0

    @property
    def return_rate(self) -> float:
        return self.returned / self.total * 100 if self.total > 0 else 0.0

    @property
    def overdue_rate(self) -> float:
        return self.overdue / self.active * 100 if self.active > 0 else 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total": self.total,
            "active": self.active,
            "returned": self.returned,
            "overdue": self.overdue,
            "return_rate": round(self.return_rate, 2),
            "overdue_rate": round(self.overdue_rate, 2),
        }


TURKISH_MONTHS = (
    "Ocak", "Şubat", "Mart", "Nisan", "Mayıs", "Haziran",
    "Temmuz", "Ağustos", "Eylül", "Ekim", "Kasım", "Aralık",
)


@dataclass
class MonthlyReport:
    month: int
    year: int
    total_borrows: int = 0
    total_returns: int = 0
    active_borrows: int = 0

    @property
    def month_name(self) -> str:
        return TURKISH_MONTHS[self.month - 1]

    @property
    def display_text(self) -> str:
        return f"{self.month_name} {self.year}: {self.total_borrows} ödünç, {self.total_returns} iade"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "month": self.month,
            "year": self.year,
            "month_name": self.month_name,
            "total_borrows": self.total_borrows,
            "total_returns": self.total_returns,
            "active_borrows": self.active_borrows,
        }
