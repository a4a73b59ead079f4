import pytest

from libraryau.barcode import (
    BarcodeType,
    barcode_type,
    create_copies,
    generate_barcode,
    is_valid_barcode,
    next_book_id,
    next_copy_number,
    parse_lib_barcode,
)
from libraryau.models import BookCopy


def _copy(book_id, number):
    return BookCopy(book_id, number, generate_barcode(book_id, number), "t1")


def test_generate_barcode_pads_both_segments():
    assert generate_barcode(1, 1) == "LIB001001"
    assert generate_barcode(42, 7) == "LIB042007"
    assert generate_barcode(999, 999) == "LIB999999"


@pytest.mark.parametrize("book_id,copy_number", [(0, 1), (1, 0), (1000, 1), (1, 1000)])
def test_generate_barcode_rejects_out_of_range(book_id, copy_number):
    with pytest.raises(ValueError):
        generate_barcode(book_id, copy_number)


@pytest.mark.parametrize("book_id,copy_number", [(1, 1), (12, 345), (999, 999), (500, 1)])
def test_parse_inverts_generate(book_id, copy_number):
    assert parse_lib_barcode(generate_barcode(book_id, copy_number)) == (book_id, copy_number)


@pytest.mark.parametrize("value", [
    "", "LIB", "LIB12345", "LIB1234567", "LIBABC001", "XYZ001001", None,
    # Arapça-Hint rakamları
    "LIB\u0661\u0662\u0663\u0664\u0665\u0666",
])
def test_parse_returns_none_for_malformed(value):
    assert parse_lib_barcode(value) is None


def test_next_copy_number():
    assert next_copy_number([]) == 1
    assert next_copy_number([_copy(1, 1), _copy(1, 2)]) == 3
    # Boşluklar doldurulmaz
    assert next_copy_number([_copy(1, 1), _copy(1, 5)]) == 6


def test_next_book_id():
    assert next_book_id([]) == 1
    assert next_book_id([_copy(1, 1), _copy(4, 1), _copy(2, 3)]) == 5


def test_create_copies_continues_numbering():
    existing = [_copy(7, 1), _copy(7, 2)]
    copies = create_copies(7, 3, existing, "t9")

    assert [c.copy_number for c in copies] == [3, 4, 5]
    assert [c.barcode for c in copies] == ["LIB007003", "LIB007004", "LIB007005"]
    assert all(c.book_template_id == "t9" for c in copies)
    assert all(c.is_available and c.id is None for c in copies)


def test_create_copies_rejects_zero():
    with pytest.raises(ValueError):
        create_copies(1, 0, [], "t1")


def test_create_copies_numbers_are_unique_and_increasing():
    existing = []
    for _ in range(4):
        existing += create_copies(3, 2, existing, "t1")
    numbers = [c.copy_number for c in existing]
    assert numbers == sorted(set(numbers))
    assert len({c.barcode for c in existing}) == len(existing)


@pytest.mark.parametrize("value", [
    "LIB001001",
    "9789750719387",
    "978-975-07-1938-7",
    "979 10 90636 07 1",
    "0306406152",
    "030640615X",
])
def test_valid_barcodes(value):
    assert is_valid_barcode(value)


@pytest.mark.parametrize("value", [
    "",
    "LIB00100",
    "LIB0010011",
    "lib001001",
    "1234567890123",
    "03064061",
    "03064O6152",
    "X123456789",
    "03X4061529",
    "LIB\u0661\u0662\u0663\u0664\u0665\u0666",
    "\u0669\u0667\u0668\u0669\u0667\u0665\u0660\u0667\u0661\u0669\u0663\u0668\u0667",
])
def test_invalid_barcodes(value):
    assert not is_valid_barcode(value)


def test_barcode_type():
    assert barcode_type("LIB001001") is BarcodeType.LIB
    assert barcode_type("9789750719387") is BarcodeType.ISBN
    assert BarcodeType.LIB.description == "Kütüphane Barkodu"
