"""Katalog ve öğrenci kayıt yönetimi.

Ödünç çekirdeğinin okuduğu verileri üreten yönetim işlemleri. Hepsi çevrimiçi
olmayı ve ilgili yetkiyi gerektirir; form hataları ``ValueError`` olarak döner.
"""

import logging
from datetime import datetime
from typing import Callable, List, Optional, Tuple

from . import barcode
from .access import NetworkMonitor, Permission, PermissionChecker
from .config import settings
from .errors import NotFound, OfflineError, PermissionDenied
from .models import ACTIVE, BookCopy, BookTemplate, Deleted, Student
from .repository import LibraryRepository
from .validators import StudentValidator, TemplateValidator

logger = logging.getLogger(__name__)


class CatalogService:
    def __init__(
        self,
        repository: LibraryRepository,
        access: PermissionChecker,
        network: NetworkMonitor,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.repository = repository
        self.access = access
        self.network = network
        self.clock = clock or datetime.now

    def _require(self, permission: Permission) -> None:
        if not self.network.is_online():
            raise OfflineError()
        if not self.access.has_permission(permission):
            raise PermissionDenied()

    @staticmethod
    def _check_copy_count(copy_count: int) -> None:
        if copy_count < 1:
            raise ValueError("Kopya sayısı 1'den az olamaz")
        if copy_count > settings.max_copies_per_batch:
            raise ValueError(
                f"Tek seferde en fazla {settings.max_copies_per_batch} kopya ekleyebilirsiniz"
            )

    def _template(self, template_id: str) -> BookTemplate:
        template = self.repository.get_template(template_id)
        if template is None:
            raise NotFound(f"Kitap bulunamadı: {template_id}")
        return template

    def _student(self, student_id: str) -> Student:
        student = self.repository.get_student(student_id)
        if student is None:
            raise NotFound(f"Öğrenci bulunamadı: {student_id}")
        return student

    # ------------------------- Kitaplar ------------------------- #
    def add_book_with_copies(
        self,
        title: str,
        author: str,
        isbn: str,
        publisher: str,
        copy_count: int = 1,
        editor: str = "",
        category: str = "",
        description: str = "",
    ) -> Tuple[BookTemplate, List[BookCopy]]:
        self._require(Permission.MANAGE_BOOKS)
        errors = TemplateValidator.validate(title, author, isbn, publisher)
        if errors:
            raise ValueError("; ".join(errors))
        self._check_copy_count(copy_count)

        template = BookTemplate(
            title=title.strip(),
            author=author.strip(),
            isbn=isbn.strip(),
            publisher=publisher.strip(),
            editor=editor.strip(),
            category=category.strip(),
            description=description.strip(),
            created_at=self.clock(),
        )
        # Barkod hataları şablon yazılmadan önce yükselir
        book_id = self.repository.next_book_id()
        copies = self._plan_copies(book_id, copy_count, [], "")
        self.repository.add_template(template)
        for copy in copies:
            copy.book_template_id = template.id
        self._save_copies(template, book_id, copies)
        return template, copies

    def add_copies(self, template: BookTemplate, copy_count: int) -> List[BookCopy]:
        """Mevcut şablona kopya ekler; kitap numarası korunur."""
        self._require(Permission.MANAGE_BOOKS)
        self._check_copy_count(copy_count)
        if not template.id:
            raise NotFound("Kitap ID'si bulunamadı")

        # Silinmiş kopyalar da sayılır: numaralar asla tekrar etmez
        existing = self.repository.fetch_copies(template.id, include_deleted=True)
        book_id = existing[0].book_id if existing else self.repository.next_book_id()
        copies = self._plan_copies(book_id, copy_count, existing, template.id)
        self._save_copies(template, book_id, copies)
        return copies

    def _plan_copies(
        self,
        book_id: int,
        copy_count: int,
        existing: List[BookCopy],
        template_id: str,
    ) -> List[BookCopy]:
        """Kopyaları barkodlarıyla hazırlar ve çakışmaları denetler; hiçbir şey yazmaz."""
        copies = barcode.create_copies(book_id, copy_count, existing, template_id)
        taken = {c.barcode for c in self.repository.fetch_all_copies()}
        conflicts = [c.barcode for c in copies if c.barcode in taken]
        if conflicts:
            raise ValueError(f"Barkod çakışması: {', '.join(conflicts)}")
        return copies

    def _save_copies(self, template: BookTemplate, book_id: int, copies: List[BookCopy]) -> None:
        now = self.clock()
        for copy in copies:
            copy.created_at = now
            self.repository.add_copy(copy)
        logger.info(f"{template.title} için {len(copies)} kopya eklendi (kitap no {book_id})")

    def soft_delete_template(self, template_id: str) -> BookTemplate:
        self._require(Permission.MANAGE_BOOKS)
        template = self._template(template_id)
        template.lifecycle = Deleted(at=self.clock())
        self.repository.update_template(template)
        logger.info(f"Kitap çöpe taşındı: {template.title}")
        return template

    def restore_template(self, template_id: str) -> BookTemplate:
        """Şablonu ve silinmiş kopyalarını geri getirir."""
        self._require(Permission.MANAGE_BOOKS)
        template = self._template(template_id)
        template.lifecycle = ACTIVE
        self.repository.update_template(template)
        restored = 0
        for copy in self.repository.fetch_copies(template_id, include_deleted=True):
            if copy.is_deleted:
                copy.lifecycle = ACTIVE
                self.repository.update_copy(copy)
                restored += 1
        logger.info(f"Kitap ve {restored} kopyası geri yüklendi: {template.title}")
        return template

    def delete_template_with_copies(self, template_id: str) -> int:
        """Şablonu ve tüm kopyalarını kalıcı olarak siler; silinen kopya sayısını döndürür."""
        self._require(Permission.MANAGE_BOOKS)
        template = self._template(template_id)
        copies = self.repository.fetch_copies(template_id, include_deleted=True)
        for copy in copies:
            self.repository.delete_copy(copy.id)
        self.repository.delete_template(template_id)
        logger.info(f"Kitap ve {len(copies)} kopyası kalıcı olarak silindi: {template.title}")
        return len(copies)

    def soft_delete_copy(self, copy_id: str) -> BookCopy:
        self._require(Permission.MANAGE_BOOKS)
        copy = self.repository.get_copy(copy_id)
        if copy is None:
            raise NotFound(f"Kopya bulunamadı: {copy_id}")
        copy.lifecycle = Deleted(at=self.clock())
        self.repository.update_copy(copy)
        return copy

    # ------------------------- Öğrenciler ------------------------- #
    def add_student(self, name: str, surname: str, student_number: str, email: str) -> Student:
        self._require(Permission.MANAGE_STUDENTS)
        existing = [s.student_number for s in self.repository.fetch_students(include_deleted=True)]
        errors = StudentValidator.validate(name, surname, student_number, email, existing)
        if errors:
            raise ValueError("; ".join(errors))

        student = Student(
            name=name.strip(),
            surname=surname.strip(),
            student_number=student_number.strip(),
            email=email.strip().lower(),
            created_at=self.clock(),
        )
        return self.repository.add_student(student)

    def soft_delete_student(self, student_id: str) -> Student:
        self._require(Permission.MANAGE_STUDENTS)
        student = self._student(student_id)
        student.lifecycle = Deleted(at=self.clock())
        self.repository.update_student(student)
        logger.info(f"Öğrenci çöpe taşındı: {student.display_text}")
        return student

    def restore_student(self, student_id: str) -> Student:
        self._require(Permission.MANAGE_STUDENTS)
        student = self._student(student_id)
        student.lifecycle = ACTIVE
        self.repository.update_student(student)
        return student
