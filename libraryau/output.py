import json
import os
from datetime import datetime
from typing import Any, Dict, List, Sequence, Tuple

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from . import rules
from .models import BookTemplate, BorrowingStatistics, LoanDetails, MonthlyReport, Student

# CLI çıktı modunu kontrol eden ortam değişkeni
# İzin verilen değerler: 'plain' (varsayılan), 'json', 'rich'
OUTPUT_MODE_ENV = "LIBRARYAU_OUTPUT"

_console = Console()


def set_output_mode(mode: str) -> None:
    mode = (mode or "").lower().strip()
    if mode in {"plain", "json", "rich"}:
        os.environ[OUTPUT_MODE_ENV] = mode


def get_output_mode() -> str:
    return os.environ.get(OUTPUT_MODE_ENV, "plain").lower()


def _print_json(payload: Any) -> None:
    print(json.dumps(payload, ensure_ascii=False))


def _date(value: datetime) -> str:
    return value.strftime("%d.%m.%Y")


def loan_row(details: LoanDetails, now: datetime) -> Dict[str, Any]:
    loan = details.loan
    status = rules.loan_status(loan, now)
    return {
        "id": loan.id,
        "student": details.student_name,
        "student_number": details.student.student_number if details.student else None,
        "title": details.book_title,
        "barcode": details.barcode,
        "borrow_date": loan.borrow_date.isoformat(),
        "due_date": loan.due_date.isoformat(),
        "return_date": loan.return_date.isoformat() if loan.return_date else None,
        "status": status.value,
        "remaining_days": rules.remaining_days(loan.due_date, now),
        "overdue_days": rules.overdue_days(loan.due_date, now),
    }


def print_loans(loans: Sequence[LoanDetails], now: datetime, title: str = "Ödünç Kayıtları") -> None:
    """Ödünç listesini mevcut çıktı moduna göre yazdır.
    - plain: 'BARKOD - Kitap -> Öğrenci (durum)' satırları
    - json: kayıt dizisi
    - rich: Rich tablosu
    """
    mode = get_output_mode()
    if not loans:
        print("Kayıt bulunamadı.")
        return

    rows = [loan_row(d, now) for d in loans]
    if mode == "json":
        _print_json(rows)
    elif mode == "rich":
        table = Table(title=f"📖 {title}", show_lines=True, header_style="bold cyan")
        table.add_column("Barkod", style="magenta", no_wrap=True)
        table.add_column("Kitap")
        table.add_column("Öğrenci")
        table.add_column("Teslim", no_wrap=True)
        table.add_column("Durum")
        for d, row in zip(loans, rows):
            status = rules.loan_status(d.loan, now)
            style = "red" if status is rules.LoanStatus.OVERDUE else "green"
            table.add_row(
                row["barcode"], row["title"], row["student"],
                _date(d.loan.due_date), f"[{style}]{status.label}[/]",
            )
        _console.print(table)
    else:
        for d, row in zip(loans, rows):
            status = rules.loan_status(d.loan, now)
            suffix = f", {row['overdue_days']} gün gecikmiş" if status is rules.LoanStatus.OVERDUE else ""
            print(
                f"{row['barcode']} - {row['title']} -> {row['student']} "
                f"(teslim {_date(d.loan.due_date)}, {status.label}{suffix})"
            )


def print_stats(stats: BorrowingStatistics) -> None:
    mode = get_output_mode()
    data = stats.to_dict()
    if mode == "json":
        _print_json(data)
    elif mode == "rich":
        content = (
            f"[bold]Toplam:[/] {stats.total}\n"
            f"[bold]Ödünçte:[/] {stats.active}\n"
            f"[bold]İade Edilen:[/] {stats.returned}\n"
            f"[bold]Gecikmiş:[/] [red]{stats.overdue}[/]\n"
            f"[bold]İade Oranı:[/] %{stats.return_rate:.1f}"
        )
        _console.print(Panel.fit(content, title="📊 İstatistikler", border_style="blue"))
    else:
        print(f"Toplam: {stats.total}")
        print(f"Ödünçte: {stats.active}")
        print(f"İade Edilen: {stats.returned}")
        print(f"Gecikmiş: {stats.overdue}")
        print(f"İade Oranı: %{stats.return_rate:.1f}")


def print_monthly_report(report: MonthlyReport) -> None:
    mode = get_output_mode()
    if mode == "json":
        _print_json(report.to_dict())
    elif mode == "rich":
        content = (
            f"[bold]Ödünç:[/] {report.total_borrows}\n"
            f"[bold]İade:[/] {report.total_returns}\n"
            f"[bold]Hâlâ Ödünçte:[/] {report.active_borrows}"
        )
        title = f"🗓️ {report.month_name} {report.year}"
        _console.print(Panel.fit(content, title=title, border_style="blue"))
    else:
        print(report.display_text)


def print_ranking(rows: List[Tuple[str, int]], title: str) -> None:
    mode = get_output_mode()
    if not rows:
        print("Kayıt bulunamadı.")
        return
    if mode == "json":
        _print_json([{"name": name, "count": count} for name, count in rows])
    elif mode == "rich":
        table = Table(title=title, header_style="bold cyan")
        table.add_column("#", justify="right")
        table.add_column("Ad")
        table.add_column("Ödünç", justify="right")
        for i, (name, count) in enumerate(rows, 1):
            table.add_row(str(i), name, str(count))
        _console.print(table)
    else:
        for i, (name, count) in enumerate(rows, 1):
            print(f"{i}. {name} ({count})")


def print_templates(templates: Sequence[BookTemplate], availability: Dict[str, Tuple[int, int]]) -> None:
    """``availability`` şablon kimliğinden (müsait, toplam) kopya sayısına eşlenir."""
    mode = get_output_mode()
    if not templates:
        print("Kütüphanede kitap yok.")
        return

    if mode == "json":
        payload = []
        for t in templates:
            available, total = availability.get(t.id, (0, 0))
            payload.append({**t.to_dict(), "id": t.id, "available": available, "copies": total})
        _print_json(payload)
    elif mode == "rich":
        table = Table(title="📚 Kitaplar", show_lines=True, header_style="bold cyan")
        table.add_column("ISBN", style="magenta", no_wrap=True)
        table.add_column("Başlık")
        table.add_column("Yazar")
        table.add_column("Kategori")
        table.add_column("Müsait", justify="right")
        for t in templates:
            available, total = availability.get(t.id, (0, 0))
            table.add_row(t.isbn, t.title, t.author, t.category or "-", f"{available}/{total}")
        _console.print(table)
    else:
        for t in templates:
            available, total = availability.get(t.id, (0, 0))
            print(f"{t.isbn} - {t.title} by {t.author} [{available}/{total}]")


def print_students(students: Sequence[Student]) -> None:
    mode = get_output_mode()
    if not students:
        print("Kayıtlı öğrenci yok.")
        return
    if mode == "json":
        _print_json([{**s.to_dict(), "id": s.id} for s in students])
    elif mode == "rich":
        table = Table(title="🎓 Öğrenciler", header_style="bold cyan")
        table.add_column("Numara", style="magenta", no_wrap=True)
        table.add_column("Ad Soyad")
        table.add_column("E-posta")
        for s in students:
            table.add_row(s.student_number, s.full_name, s.email)
        _console.print(table)
    else:
        for s in students:
            print(s.display_text)
