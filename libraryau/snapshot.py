"""Tek bir okuma anında yüklenen kütüphane verisi.

Görünümler ve ödünç kuralları her zaman bir snapshot üzerinden çalışır; depoya
yalnızca yazma sırasında gidilir. Çevrimdışıyken son snapshot okunmaya devam eder.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

from .models import BookCopy, BookTemplate, BorrowedBook, LoanDetails, Student


@dataclass
class LibrarySnapshot:
    templates: List[BookTemplate] = field(default_factory=list)
    copies: List[BookCopy] = field(default_factory=list)
    students: List[Student] = field(default_factory=list)
    loans: List[BorrowedBook] = field(default_factory=list)
    loaded_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        self._reindex()

    def _reindex(self) -> None:
        self._templates: Dict[str, BookTemplate] = {t.id: t for t in self.templates if t.id}
        self._copies: Dict[str, BookCopy] = {c.id: c for c in self.copies if c.id}
        self._students: Dict[str, Student] = {s.id: s for s in self.students if s.id}

    # ------------------------- Arama ------------------------- #
    def template(self, template_id: Optional[str]) -> Optional[BookTemplate]:
        return self._templates.get(template_id) if template_id else None

    def copy(self, copy_id: Optional[str]) -> Optional[BookCopy]:
        return self._copies.get(copy_id) if copy_id else None

    def student(self, student_id: Optional[str]) -> Optional[Student]:
        return self._students.get(student_id) if student_id else None

    def template_for_copy(self, copy: Optional[BookCopy]) -> Optional[BookTemplate]:
        return self.template(copy.book_template_id) if copy else None

    def loan_details(self, loan: BorrowedBook) -> LoanDetails:
        copy = self.copy(loan.book_copy_id)
        return LoanDetails(
            loan=loan,
            student=self.student(loan.student_id),
            copy=copy,
            template=self.template_for_copy(copy),
        )

    def active_loans_for(self, student_id: str) -> List[BorrowedBook]:
        return [l for l in self.loans if l.student_id == student_id and not l.is_returned]

    def open_loan_for_copy(self, copy_id: str) -> Optional[BorrowedBook]:
        for loan in self.loans:
            if loan.book_copy_id == copy_id and not loan.is_returned:
                return loan
        return None

    # ------------------------- Değişiklikler ------------------------- #
    def add_loan(self, loan: BorrowedBook) -> None:
        # En yeni ödünç başta kalır (depo sırası ile aynı)
        self.loans.insert(0, loan)

    def availability_mismatches(self) -> List[BookCopy]:
        """Açık ödünç durumu ile ``is_available`` bayrağı uyuşmayan kopyalar.

        Silinmiş kopyalar da dahildir; bayraklara dokunulmaz.
        """
        open_copy_ids = {l.book_copy_id for l in self.loans if not l.is_returned}
        return [c for c in self.copies if c.is_available == (c.id in open_copy_ids)]

    def loan(self, loan_id: Optional[str]) -> Optional[BorrowedBook]:
        for loan in self.loans:
            if loan.id == loan_id:
                return loan
        return None
