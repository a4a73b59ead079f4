import logging
from functools import wraps
from typing import Optional

import typer
import uvicorn

from . import barcode, search
from .config import settings
from .errors import LibraryError
from .output import (
    print_loans,
    print_monthly_report,
    print_ranking,
    print_stats,
    print_students,
    print_templates,
    set_output_mode,
)
from .services import Services, create_services

logger = logging.getLogger(__name__)


class LendingManager:
    """İşlem başına tek bir servis kümesi tutar."""

    _instance: Optional[Services] = None

    @classmethod
    def get_instance(cls) -> Services:
        if cls._instance is None:
            cls._instance = create_services()
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        cls._instance = None


def handle_errors(func):
    """Çekirdek hatalarını mesaja çevirir ve 1 koduyla çıkar."""
    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except LibraryError as e:
            logger.debug(f"{func.__name__} başarısız: {e.code}")
            print(f"Hata: {e.message}")
            raise typer.Exit(code=1)
        except ValueError as e:
            print(f"Hata: {e}")
            raise typer.Exit(code=1)
    return wrapper


# --- Typer CLI Uygulaması ---
app = typer.Typer(help=settings.app_name)


@app.callback()
def _global_options(
    output: Optional[str] = typer.Option(
        None,
        "--output",
        "-o",
        help="Çıktı formatı: plain | json | rich (varsayılan: plain)",
    )
):
    """CLI için genel seçenekler (ör. çıktı modu)."""
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    if output:
        set_output_mode(output)


# ------------------------- Ödünç ------------------------- #
@app.command("borrow")
@handle_errors
def cli_borrow(
    student_number: str = typer.Argument(..., help="8 haneli öğrenci numarası"),
    barcode_value: str = typer.Argument(..., metavar="BARCODE", help="Kopya barkodu"),
    days: Optional[int] = typer.Option(None, "--days", "-d", min=1, help="Ödünç süresi (gün)"),
):
    """Bir kopyayı öğrenciye ödünç ver."""
    services = LendingManager.get_instance()
    loan = services.lending.lend(student_number, barcode_value, days)
    details = services.lending.loan_details(loan)
    print(
        f"'{details.book_title}' kitabı {details.student_name} öğrencisine ödünç verildi. "
        f"Teslim tarihi: {loan.due_date.strftime('%d.%m.%Y')}"
    )


@app.command("return")
@handle_errors
def cli_return(barcode_value: str = typer.Argument(..., metavar="BARCODE", help="Kopya barkodu")):
    """Barkodu okutulan kopyanın iadesini al."""
    services = LendingManager.get_instance()
    loan = services.lending.return_by_barcode(barcode_value)
    details = services.lending.loan_details(loan)
    print(f"'{details.book_title}' {details.student_name} öğrencisinden iade alındı.")


@app.command("loans")
@handle_errors
def cli_loans(
    status: search.LoanStatusFilter = typer.Option(
        search.LoanStatusFilter.ALL, "--status", "-s", help="all | active | returned | overdue"
    ),
    query: str = typer.Option("", "--search", "-q", help="Öğrenci, kitap ya da barkod"),
):
    """Ödünç kayıtlarını listele."""
    lending = LendingManager.get_instance().lending
    now = lending.clock()
    loans = search.filter_loans(lending.snapshot.loans, query, status, lending.snapshot, now)
    print_loans([lending.loan_details(l) for l in loans], now)


@app.command("overdue")
@handle_errors
def cli_overdue(
    upcoming: bool = typer.Option(False, "--upcoming", help="Teslim tarihi yaklaşanları göster"),
    days: Optional[int] = typer.Option(None, "--days", "-d", help="Uyarı penceresi (gün)"),
):
    """Gecikmiş (veya teslimi yaklaşan) ödünçleri listele."""
    lending = LendingManager.get_instance().lending
    loans = lending.upcoming_due_loans(days) if upcoming else lending.overdue_loans()
    title = "Teslimi Yaklaşanlar" if upcoming else "Gecikmiş Kitaplar"
    print_loans([lending.loan_details(l) for l in loans], lending.clock(), title=title)


@app.command("stats")
@handle_errors
def cli_stats():
    """Ödünç istatistiklerini göster."""
    print_stats(LendingManager.get_instance().lending.statistics())


@app.command("report")
@handle_errors
def cli_report(
    month: Optional[int] = typer.Option(None, "--month", "-m", min=1, max=12, help="Ay (1-12)"),
    year: Optional[int] = typer.Option(None, "--year", "-y", help="Yıl"),
):
    """Aylık ödünç raporu."""
    print_monthly_report(LendingManager.get_instance().lending.monthly_report(month, year))


@app.command("popular")
@handle_errors
def cli_popular(
    limit: int = typer.Option(5, "--limit", "-l", min=1, help="Gösterilecek kayıt sayısı"),
    students: bool = typer.Option(False, "--students", help="En aktif öğrencileri göster"),
):
    """En çok ödünç alınan kitaplar ya da en aktif öğrenciler."""
    lending = LendingManager.get_instance().lending
    if students:
        rows = [(s.full_name, n) for s, n in lending.most_active_students(limit)]
        print_ranking(rows, "🎓 En Aktif Öğrenciler")
    else:
        rows = [(t.title, n) for t, n in lending.most_borrowed_templates(limit)]
        print_ranking(rows, "🏆 En Çok Ödünç Alınanlar")


@app.command("repair")
@handle_errors
def cli_repair():
    """Kopya müsaitlik bayraklarını açık ödünçlere göre düzelt."""
    repaired = LendingManager.get_instance().lending.repair_availability()
    if not repaired:
        print("Tüm kopyalar tutarlı.")
        return
    for copy in repaired:
        print(f"Düzeltildi: {copy.barcode} -> {copy.status_text}")


# ------------------------- Katalog ------------------------- #
@app.command("books")
@handle_errors
def cli_books(
    query: str = typer.Option("", "--search", "-q", help="Başlık, yazar, ISBN veya yayınevi"),
    category: str = typer.Option(search.ALL, "--category", "-c", help="Kategori"),
):
    """Katalogdaki kitapları listele."""
    snapshot = LendingManager.get_instance().lending.snapshot
    templates = search.filter_templates(snapshot.templates, query, category)
    availability = {}
    for copy in snapshot.copies:
        if copy.is_deleted:
            continue
        available, total = availability.get(copy.book_template_id, (0, 0))
        availability[copy.book_template_id] = (available + int(copy.is_available), total + 1)
    print_templates(templates, availability)


@app.command("students")
@handle_errors
def cli_students(query: str = typer.Option("", "--search", "-q", help="Ad, soyad, numara veya e-posta")):
    """Kayıtlı öğrencileri listele."""
    snapshot = LendingManager.get_instance().lending.snapshot
    print_students(search.filter_students(snapshot.students, query))


@app.command("add-book")
@handle_errors
def cli_add_book(
    title: str,
    author: str,
    isbn: str,
    publisher: str,
    copies: int = typer.Option(1, "--copies", "-n", help="Eklenecek kopya sayısı"),
    category: str = typer.Option("", "--category", "-c"),
    editor: str = typer.Option("", "--editor"),
    description: str = typer.Option("", "--description"),
):
    """Yeni bir kitap ve kopyalarını ekle."""
    services = LendingManager.get_instance()
    template, created = services.catalog.add_book_with_copies(
        title, author, isbn, publisher,
        copy_count=copies, editor=editor, category=category, description=description,
    )
    services.lending.refresh()
    print(f"Başarıyla eklendi: {template.title} - {template.author}")
    for copy in created:
        print(f"  {copy.barcode}")


@app.command("add-copies")
@handle_errors
def cli_add_copies(
    isbn: str = typer.Argument(..., help="Kitabın ISBN numarası"),
    count: int = typer.Argument(1, help="Eklenecek kopya sayısı"),
):
    """Mevcut bir kitaba kopya ekle."""
    services = LendingManager.get_instance()
    template = next(
        (t for t in services.lending.snapshot.templates if t.isbn == isbn.strip() and not t.is_deleted),
        None,
    )
    if template is None:
        print(f"ISBN'i {isbn} olan kitap bulunamadı.")
        raise typer.Exit(code=1)
    created = services.catalog.add_copies(template, count)
    services.lending.refresh()
    print(f"{template.title} için {len(created)} kopya eklendi:")
    for copy in created:
        print(f"  {copy.barcode}")


@app.command("add-student")
@handle_errors
def cli_add_student(name: str, surname: str, student_number: str, email: str):
    """Yeni öğrenci kaydet."""
    services = LendingManager.get_instance()
    student = services.catalog.add_student(name, surname, student_number, email)
    services.lending.refresh()
    print(f"Öğrenci eklendi: {student.display_text}")


@app.command("check-barcode")
def cli_check_barcode(value: str):
    """Bir barkodun geçerliliğini ve türünü göster."""
    if not barcode.is_valid_barcode(value):
        print(f"Geçersiz barkod: {value}")
        raise typer.Exit(code=1)
    kind = barcode.barcode_type(value)
    print(f"Geçerli: {kind.description}")
    parsed = barcode.parse_lib_barcode(value)
    if parsed:
        print(f"Kitap No: {parsed[0]}, Kopya No: {parsed[1]}")


@app.command("serve")
def cli_serve(
    host: Optional[str] = typer.Option(None, "--host", help="Dinlenecek adres"),
    port: Optional[int] = typer.Option(None, "--port", help="Dinlenecek port"),
):
    """HTTP API'yi Uvicorn ile başlat."""
    host = host or settings.api_host
    port = port or int(settings.api_port)
    print(f"API http://{host}:{port}/ adresinde başlatılıyor")
    uvicorn.run("libraryau.api:app", host=host, port=port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    app()
