import logging
from datetime import datetime
from typing import List, Optional

from .barcode import next_book_id
from .models import BookCopy, BookTemplate, BorrowedBook, Student, format_timestamp
from .snapshot import LibrarySnapshot
from .store import BOOK_COPIES, BOOK_TEMPLATES, BORROWED_BOOKS, STUDENTS, DocumentStore

logger = logging.getLogger(__name__)


class LibraryRepository:
    """Belge deposu üzerinde tipli okuma/yazma işlemleri."""

    def __init__(self, store: DocumentStore) -> None:
        self.store = store

    # ------------------------- Kitap şablonları ------------------------- #
    def fetch_templates(self, include_deleted: bool = False) -> List[BookTemplate]:
        docs = self.store.query(BOOK_TEMPLATES, order_by="title")
        templates = [BookTemplate.from_dict(d) for d in docs]
        return templates if include_deleted else [t for t in templates if not t.is_deleted]

    def get_template(self, template_id: str) -> Optional[BookTemplate]:
        doc = self.store.get(BOOK_TEMPLATES, template_id)
        return BookTemplate.from_dict(doc) if doc else None

    def add_template(self, template: BookTemplate) -> BookTemplate:
        template.id = self.store.insert(BOOK_TEMPLATES, template.to_dict())
        logger.info(f"Kitap şablonu eklendi: {template.title} ({template.id})")
        return template

    def update_template(self, template: BookTemplate) -> None:
        self.store.replace(BOOK_TEMPLATES, template.id, template.to_dict())

    def delete_template(self, template_id: str) -> None:
        self.store.delete(BOOK_TEMPLATES, template_id)

    # ------------------------- Kopyalar ------------------------- #
    def fetch_all_copies(self) -> List[BookCopy]:
        return [BookCopy.from_dict(d) for d in self.store.get_all(BOOK_COPIES)]

    def fetch_copies(self, template_id: str, include_deleted: bool = False) -> List[BookCopy]:
        docs = self.store.query(BOOK_COPIES, where={"bookTemplateId": template_id}, order_by="copyNumber")
        copies = [BookCopy.from_dict(d) for d in docs]
        return copies if include_deleted else [c for c in copies if not c.is_deleted]

    def get_copy(self, copy_id: str) -> Optional[BookCopy]:
        doc = self.store.get(BOOK_COPIES, copy_id)
        return BookCopy.from_dict(doc) if doc else None

    def find_copy(self, barcode: str) -> Optional[BookCopy]:
        for doc in self.store.query(BOOK_COPIES, where={"barcode": barcode}):
            copy = BookCopy.from_dict(doc)
            if not copy.is_deleted:
                return copy
        return None

    def next_book_id(self) -> int:
        return next_book_id(self.fetch_all_copies())

    def add_copy(self, copy: BookCopy) -> BookCopy:
        copy.id = self.store.insert(BOOK_COPIES, copy.to_dict())
        return copy

    def update_copy(self, copy: BookCopy) -> None:
        self.store.replace(BOOK_COPIES, copy.id, copy.to_dict())

    def set_copy_availability(self, copy_id: str, is_available: bool) -> None:
        self.store.update(BOOK_COPIES, copy_id, {"isAvailable": is_available})

    def delete_copy(self, copy_id: str) -> None:
        self.store.delete(BOOK_COPIES, copy_id)

    # ------------------------- Öğrenciler ------------------------- #
    def fetch_students(self, include_deleted: bool = False) -> List[Student]:
        docs = self.store.query(STUDENTS, order_by="name")
        students = [Student.from_dict(d) for d in docs]
        return students if include_deleted else [s for s in students if not s.is_deleted]

    def get_student(self, student_id: str) -> Optional[Student]:
        doc = self.store.get(STUDENTS, student_id)
        return Student.from_dict(doc) if doc else None

    def find_student(self, student_number: str) -> Optional[Student]:
        docs = self.store.query(STUDENTS, where={"studentNumber": student_number}, limit=1)
        return Student.from_dict(docs[0]) if docs else None

    def add_student(self, student: Student) -> Student:
        student.id = self.store.insert(STUDENTS, student.to_dict())
        logger.info(f"Öğrenci eklendi: {student.display_text}")
        return student

    def update_student(self, student: Student) -> None:
        self.store.replace(STUDENTS, student.id, student.to_dict())

    # ------------------------- Ödünçler ------------------------- #
    def fetch_loans(self) -> List[BorrowedBook]:
        docs = self.store.query(BORROWED_BOOKS, order_by="borrowDate", descending=True)
        return [BorrowedBook.from_dict(d) for d in docs]

    def create_loan(self, loan: BorrowedBook) -> BorrowedBook:
        loan.id = self.store.insert(BORROWED_BOOKS, loan.to_dict())
        return loan

    def mark_returned(self, loan_id: str, when: datetime) -> None:
        self.store.update(
            BORROWED_BOOKS,
            loan_id,
            {"isReturned": True, "returnDate": format_timestamp(when)},
        )

    def load_snapshot(self, now: Optional[datetime] = None) -> LibrarySnapshot:
        """Tüm koleksiyonları okur; silinmiş kayıtlar da dahil edilir."""
        return LibrarySnapshot(
            templates=self.fetch_templates(include_deleted=True),
            copies=self.fetch_all_copies(),
            students=self.fetch_students(include_deleted=True),
            loans=self.fetch_loans(),
            loaded_at=now or datetime.now(),
        )
