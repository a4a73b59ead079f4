"""Ödünç verme ve iade akışı.

Kurallar snapshot üzerinde denetlenir; depoya yalnızca geçerli işlemler yazılır.
Bir ödünç işlemi iki ayrı belge yazar (ödünç kaydı, sonra kopyanın müsaitlik
bayrağı). Depo çok belgeli işlem sunmadığı için ikinci yazma başarısız olursa ilk
yazma geri alınmaz: ``StoreFailure`` fırlatılır, ödünç kaydı yerinde kalır ve
sonraki ``refresh()`` uyuşmazlığı raporlar, ``repair_availability()`` düzeltir.
"""

import logging
import threading
from datetime import datetime
from typing import Callable, Iterable, List, Optional, Tuple

from . import reports, rules
from .access import NetworkMonitor, Permission, PermissionChecker
from .config import settings
from .errors import (
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
from .models import (
    BookCopy,
    BookTemplate,
    BorrowedBook,
    BorrowingStatistics,
    LoanDetails,
    MonthlyReport,
    Student,
)
from .repository import LibraryRepository
from .snapshot import LibrarySnapshot

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


# ------------------------- Saf işlemler ------------------------- #
def search_student(student_number: str, roster: Iterable[Student]) -> Optional[Student]:
    number = (student_number or "").strip()
    if not number:
        return None
    for student in roster:
        if student.student_number == number and not student.is_deleted:
            return student
    return None


def search_copy_by_barcode(barcode: str, copies: Iterable[BookCopy]) -> Optional[BookCopy]:
    code = (barcode or "").strip()
    if not code:
        return None
    for copy in copies:
        if copy.barcode == code and not copy.is_deleted:
            return copy
    return None


def validate_borrow(
    student: Student,
    copy: BookCopy,
    template: BookTemplate,
    student_active_loans: List[BorrowedBook],
    all_copies: Iterable[BookCopy],
) -> None:
    """Ödünç verilemiyorsa ilk ihlal edilen kuralın hatasını fırlatır."""
    if student.id is None:
        raise InvalidStudent()
    if not copy.is_available:
        raise CopyUnavailable(f"Bu kitap şu anda müsait değil. Barkod: {copy.barcode}")
    if not rules.can_borrow_book(len(student_active_loans)):
        raise LimitExceeded(
            f"{student.full_name} maksimum kitap limitine ulaştı "
            f"({len(student_active_loans)}/{rules.MAX_BOOKS_PER_STUDENT})"
        )
    if template.id is None:
        raise NotFound("Kitap kimliği bulunamadı.")
    if not rules.can_borrow_same_book(student_active_loans, template.id, all_copies):
        raise DuplicateTitle(f"{student.full_name} zaten '{template.title}' kitabından ödünç almış.")


class LendingLifecycle:
    """Ödünç işlemlerini bir snapshot ve işbirlikçilere bağlar."""

    def __init__(
        self,
        repository: LibraryRepository,
        access: PermissionChecker,
        network: NetworkMonitor,
        clock: Optional[Clock] = None,
        snapshot: Optional[LibrarySnapshot] = None,
    ) -> None:
        self.repository = repository
        self.access = access
        self.network = network
        self.clock: Clock = clock or datetime.now
        self.snapshot = snapshot or LibrarySnapshot()
        # Denetimden kopya yazımına kadar olan adımlar iş parçacıkları arasında bölünmez
        self._lock = threading.RLock()

    # ------------------------- Kapılar ------------------------- #
    def _require_online(self) -> None:
        if not self.network.is_online():
            raise OfflineError()

    def _require(self, permission: Permission) -> None:
        self._require_online()
        if not self.access.has_permission(permission):
            raise PermissionDenied()

    # ------------------------- Yükleme ------------------------- #
    def refresh(self) -> LibrarySnapshot:
        """Snapshot'ı depodan yeniden yükler.

        Yükleme başarısız olursa eski snapshot korunur ve hata yükseltilir.
        """
        self._require_online()
        snapshot = self.repository.load_snapshot(self.clock())
        with self._lock:
            self.snapshot = snapshot
        if settings.reconcile_on_load:
            for copy in snapshot.availability_mismatches():
                logger.warning(
                    f"Müsaitlik uyuşmazlığı: {copy.barcode} kopyası "
                    f"{'müsait' if copy.is_available else 'ödünçte'} görünüyor"
                )
        return snapshot

    def repair_availability(self) -> List[BookCopy]:
        """Uyuşmayan kopyaların bayrağını açık ödünç durumuna göre yazar."""
        self._require(Permission.MANAGE_BORROWING)
        repaired = []
        with self._lock:
            for copy in self.snapshot.availability_mismatches():
                expected = not copy.is_available
                self.repository.set_copy_availability(copy.id, expected)
                copy.is_available = expected
                repaired.append(copy)
                logger.info(f"Kopya durumu düzeltildi: {copy.barcode} -> {copy.status_text}")
        return repaired

    # ------------------------- Ödünç verme ------------------------- #
    def borrow(
        self,
        student: Student,
        copy: BookCopy,
        template: BookTemplate,
        borrow_days: Optional[int] = None,
    ) -> BorrowedBook:
        self._require(Permission.MANAGE_BORROWING)
        if borrow_days is None:
            borrow_days = rules.DEFAULT_BORROW_DAYS
        if borrow_days < 1:
            raise ValueError(f"Ödünç süresi en az 1 gün olmalı, {borrow_days} verildi.")
        if template.id is not None and template.id != copy.book_template_id:
            raise NotFound(f"{copy.barcode} kopyası '{template.title}' kitabına ait değil.")

        with self._lock:
            # Başka bir işlem aynı kopyayı az önce ödünç vermiş olabilir
            current = self.snapshot.copy(copy.id) or copy
            validate_borrow(
                student,
                current,
                template,
                self.snapshot.active_loans_for(student.id) if student.id else [],
                self.snapshot.copies,
            )
            if current.id is None:
                raise NotFound("Geçersiz kopya bilgisi.")

            loan = BorrowedBook(
                book_copy_id=current.id,
                student_id=student.id,
                borrow_date=self.clock(),
                borrow_days=borrow_days,
            )
            self.repository.create_loan(loan)
            self.snapshot.add_loan(loan)

            try:
                self.repository.set_copy_availability(current.id, False)
            except StoreFailure as e:
                logger.error(f"Ödünç {loan.id} yazıldı ancak {current.barcode} güncellenemedi: {e}")
                raise StoreFailure(
                    f"Ödünç kaydı {loan.id} oluşturuldu ancak {current.barcode} kopyası hâlâ müsait görünüyor."
                ) from e

            current.is_available = False
            copy.is_available = False
        logger.info(f"Kitap ödünç verildi: {template.title} -> {student.full_name}")
        return loan

    def lend(self, student_number: str, barcode: str, borrow_days: Optional[int] = None) -> BorrowedBook:
        """Öğrenci numarası ve barkodla ödünç verir."""
        self._require(Permission.MANAGE_BORROWING)
        student = search_student(student_number, self.snapshot.students)
        if student is None:
            raise NotFound(f"Bu numaraya sahip öğrenci bulunamadı: {student_number}")
        copy = search_copy_by_barcode(barcode, self.snapshot.copies)
        if copy is None:
            raise NotFound(f"Bu barkoda sahip kitap bulunamadı: {barcode}")
        template = self.snapshot.template_for_copy(copy)
        if template is None:
            raise NotFound(f"{copy.barcode} kopyasının kitap kaydı bulunamadı.")
        return self.borrow(student, copy, template, borrow_days)

    # ------------------------- İade ------------------------- #
    def return_loan(self, loan: BorrowedBook) -> BorrowedBook:
        self._require(Permission.MANAGE_BORROWING)
        with self._lock:
            if loan.is_returned:
                raise AlreadyReturned()
            if loan.id is None:
                raise NotFound("Geçersiz ödünç kaydı.")

            now = self.clock()
            self.repository.mark_returned(loan.id, now)
            loan.mark_returned(now)
            cached_loan = self.snapshot.loan(loan.id)
            if cached_loan is not None and cached_loan is not loan:
                cached_loan.mark_returned(now)

            copy = self.snapshot.copy(loan.book_copy_id) or self.repository.get_copy(loan.book_copy_id)
            if copy is None:
                logger.warning(f"İade edilen ödünç {loan.id} için kopya bulunamadı: {loan.book_copy_id}")
                return loan

            try:
                self.repository.set_copy_availability(copy.id, True)
            except StoreFailure as e:
                logger.error(f"Ödünç {loan.id} iade edildi ancak {copy.barcode} güncellenemedi: {e}")
                raise StoreFailure(
                    f"Ödünç kaydı {loan.id} iade edildi ancak {copy.barcode} kopyası hâlâ ödünçte görünüyor."
                ) from e
            copy.is_available = True

        details = self.snapshot.loan_details(loan)
        logger.info(f"Kitap iade edildi: {details.book_title} <- {details.student_name}")
        return loan

    def return_by_id(self, loan_id: str) -> BorrowedBook:
        loan = self.snapshot.loan(loan_id)
        if loan is None:
            raise NotFound(f"Ödünç kaydı bulunamadı: {loan_id}")
        return self.return_loan(loan)

    def return_by_barcode(self, barcode: str) -> BorrowedBook:
        """Kopyanın açık ödünç kaydını iade eder."""
        copy = search_copy_by_barcode(barcode, self.snapshot.copies)
        if copy is None:
            raise NotFound(f"Bu barkoda sahip kitap bulunamadı: {barcode}")
        loan = self.snapshot.open_loan_for_copy(copy.id)
        if loan is None:
            raise AlreadyReturned(f"{copy.barcode} kopyasının açık ödünç kaydı yok.")
        return self.return_loan(loan)

    # ------------------------- Görünümler ------------------------- #
    def loan_details(self, loan: BorrowedBook) -> LoanDetails:
        return self.snapshot.loan_details(loan)

    def active_loans(self) -> List[BorrowedBook]:
        return reports.active_loans(self.snapshot)

    def overdue_loans(self) -> List[BorrowedBook]:
        return reports.overdue_loans(self.snapshot, self.clock())

    def statistics(self) -> BorrowingStatistics:
        return reports.statistics(self.snapshot, self.clock())

    def most_borrowed_templates(self, limit: int = 5) -> List[Tuple[BookTemplate, int]]:
        return reports.most_borrowed_templates(self.snapshot, limit)

    def most_active_students(self, limit: int = 5) -> List[Tuple[Student, int]]:
        return reports.most_active_students(self.snapshot, limit)

    def monthly_report(self, month: Optional[int] = None, year: Optional[int] = None) -> MonthlyReport:
        now = self.clock()
        return reports.monthly_report(self.snapshot, month or now.month, year or now.year)

    def upcoming_due_loans(self, days: Optional[int] = None) -> List[BorrowedBook]:
        return reports.upcoming_due_loans(self.snapshot, self.clock(), days)

    def student_loans(self, student_id: str) -> Tuple[List[BorrowedBook], List[BorrowedBook]]:
        return reports.student_loans(self.snapshot, student_id)
