"""Fiziksel kopyalar için barkod üretimi ve doğrulaması.

Kopyalar ``LIB`` + 3 haneli kitap no + 3 haneli kopya no biçiminde sistem
barkodu alır (``LIB001001``). Okuyucular kitabın üzerindeki ISBN değerini de
gönderebildiği için doğrulama iki biçimi de kabul eder.
"""

import re
from enum import Enum
from typing import Iterable, List, Optional, Tuple

from .models import BookCopy

LIB_PREFIX = "LIB"
LIB_BARCODE_LENGTH = 9
MAX_SEGMENT_VALUE = 999

_LIB_PATTERN = re.compile(r"^LIB[0-9]{6}$")
_ASCII_DIGITS = frozenset("0123456789")


class BarcodeType(str, Enum):
    ISBN = "isbn"
    LIB = "lib"

    @property
    def description(self) -> str:
        return "Kütüphane Barkodu" if self is BarcodeType.LIB else "ISBN Barkodu"


def next_copy_number(existing_copies: Iterable[BookCopy]) -> int:
    """Kopya numaraları yalnızca artar; silinen kopyaların boşlukları tekrar kullanılmaz."""
    return max((c.copy_number for c in existing_copies), default=0) + 1


def next_book_id(all_copies: Iterable[BookCopy]) -> int:
    return max((c.book_id for c in all_copies), default=0) + 1


def generate_barcode(book_id: int, copy_number: int) -> str:
    """``LIB`` + sıfırla doldurulmuş numaraları döndürür.

    İki bölüm de üç hanelidir; 999 üstü değerler geri ayrıştırılamayan bir
    barkod üretmek yerine reddedilir.
    """
    for label, value in (("book_id", book_id), ("copy_number", copy_number)):
        if not 1 <= value <= MAX_SEGMENT_VALUE:
            raise ValueError(f"{label} 1 ile {MAX_SEGMENT_VALUE} arasında olmalı, {value} verildi.")
    return f"{LIB_PREFIX}{book_id:03d}{copy_number:03d}"


def create_copies(
    book_id: int,
    copy_count: int,
    existing_copies: Iterable[BookCopy],
    template_id: str,
) -> List[BookCopy]:
    """Şablon için ``copy_count`` adet yeni kopya ayırır. Hiçbir şey kaydedilmez."""
    if copy_count < 1:
        raise ValueError("Kopya sayısı 1'den az olamaz.")
    start = next_copy_number(existing_copies)
    return [
        BookCopy(
            book_id=book_id,
            copy_number=number,
            barcode=generate_barcode(book_id, number),
            book_template_id=template_id,
        )
        for number in range(start, start + copy_count)
    ]


def _clean(value: str) -> str:
    return value.replace("-", "").replace(" ", "")


def _is_digits(value: str) -> bool:
    # str.isdigit() ASCII dışı rakamları da kabul eder
    return bool(value) and all(ch in _ASCII_DIGITS for ch in value)


def is_valid_isbn(value: str) -> bool:
    """Yalnızca biçim kontrolü; okutulan ISBN eşleştirilir, sağlama yapılmaz."""
    s = _clean(value)
    if len(s) == 13:
        return _is_digits(s) and s.startswith(("978", "979"))
    if len(s) == 10:
        # X yalnızca son (kontrol) hanede olabilir
        return _is_digits(s[:9]) and (_is_digits(s[9]) or s[9] == "X")
    return False


def is_lib_barcode(value: str) -> bool:
    return bool(_LIB_PATTERN.match(value or ""))


def is_valid_barcode(value: str) -> bool:
    if not value:
        return False
    return is_valid_isbn(value) or is_lib_barcode(value)


def parse_lib_barcode(value: str) -> Optional[Tuple[int, int]]:
    """:func:`generate_barcode` işleminin tersi; hatalı girdide ``None``."""
    if not value or not value.startswith(LIB_PREFIX) or len(value) != LIB_BARCODE_LENGTH:
        return None
    digits = value[len(LIB_PREFIX):]
    book_part, copy_part = digits[:3], digits[3:]
    if not (_is_digits(book_part) and _is_digits(copy_part)):
        return None
    return int(book_part), int(copy_part)


def barcode_type(value: str) -> BarcodeType:
    return BarcodeType.LIB if (value or "").startswith(LIB_PREFIX) else BarcodeType.ISBN
