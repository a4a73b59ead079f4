import re
from typing import Iterable, List, Optional

from .barcode import is_valid_isbn

EMAIL_PATTERN = re.compile(r"^[A-Z0-9a-z._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,64}$")
STUDENT_NUMBER_LENGTH = 8
MIN_NAME_LENGTH = 2


class StudentValidator:
    """Validation rules for the student registration form."""

    @staticmethod
    def normalize_student_number(raw: Optional[str]) -> str:
        if raw is None:
            return ""
        return re.sub(r"\D", "", raw)

    @staticmethod
    def is_valid_email(email: Optional[str]) -> bool:
        if not email:
            return False
        return bool(EMAIL_PATTERN.match(email.strip()))

    @staticmethod
    def validate(
        name: Optional[str],
        surname: Optional[str],
        student_number: Optional[str],
        email: Optional[str],
        existing_numbers: Iterable[str] = (),
    ) -> List[str]:
        """Return every problem found; an empty list means the form is valid."""
        errors = []
        name = (name or "").strip()
        surname = (surname or "").strip()
        number = (student_number or "").strip()

        if not name:
            errors.append("Öğrenci adı boş olamaz")
        elif len(name) < MIN_NAME_LENGTH:
            errors.append("Öğrenci adı en az 2 karakter olmalıdır")

        if not surname:
            errors.append("Öğrenci soyadı boş olamaz")
        elif len(surname) < MIN_NAME_LENGTH:
            errors.append("Öğrenci soyadı en az 2 karakter olmalıdır")

        if not number:
            errors.append("Öğrenci numarası boş olamaz")
        elif not number.isdigit():
            errors.append("Öğrenci numarası yalnızca rakamlardan oluşmalıdır")
        elif len(number) < STUDENT_NUMBER_LENGTH:
            errors.append(f"Öğrenci numarası 8 haneli olmalıdır (şu an: {len(number)} hane)")
        elif len(number) > STUDENT_NUMBER_LENGTH:
            errors.append("Öğrenci numarası en fazla 8 hane olabilir")
        elif number in set(existing_numbers):
            errors.append("Bu öğrenci numarası zaten kullanılıyor")

        if not (email or "").strip():
            errors.append("E-posta adresi boş olamaz")
        elif not StudentValidator.is_valid_email(email):
            errors.append("Geçerli bir e-posta adresi giriniz")
        return errors


class TemplateValidator:
    """Validation rules for a new catalog entry."""

    @staticmethod
    def validate(
        title: Optional[str],
        author: Optional[str],
        isbn: Optional[str],
        publisher: Optional[str],
    ) -> List[str]:
        errors = []
        if not (title or "").strip():
            errors.append("Kitap adı boş olamaz")
        if not (author or "").strip():
            errors.append("Yazar adı boş olamaz")
        if not (isbn or "").strip():
            errors.append("ISBN numarası boş olamaz")
        elif not is_valid_isbn(isbn.strip()):
            errors.append("Geçersiz ISBN formatı")
        if not (publisher or "").strip():
            errors.append("Yayınevi boş olamaz")
        return errors
