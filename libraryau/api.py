import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Dict, List, Optional

from fastapi import Depends, FastAPI, HTTPException, Query, Request, Security
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.security import APIKeyHeader
from pydantic import BaseModel, Field

from . import barcode, search
from .config import settings
from .errors import LibraryError, StoreFailure
from .models import BookCopy, BookTemplate, Student
from .output import loan_row
from .services import Services, create_services

logger = logging.getLogger(__name__)

_services: Optional[Services] = None


def get_services() -> Services:
    """Servis kümesi bağımlılığı; testler ``dependency_overrides`` ile değiştirir."""
    global _services
    if _services is None:
        _services = create_services()
    return _services


@asynccontextmanager
async def lifespan(app: FastAPI):
    logging.basicConfig(level=settings.log_level.upper())
    logger.info(f"{settings.app_name} {settings.app_version} başlatılıyor")
    yield


app = FastAPI(title="Kütüphane Ödünç API'si", version=settings.app_version, lifespan=lifespan)

# --- CORS ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# --- Hata eşlemesi ---
STATUS_BY_CODE: Dict[str, int] = {
    "offline": 503,
    "permission_denied": 403,
    "not_found": 404,
    "invalid_student": 400,
    "copy_unavailable": 409,
    "limit_exceeded": 409,
    "duplicate_title": 409,
    "already_returned": 409,
    "store_failure": 502,
}


@app.exception_handler(LibraryError)
async def library_error_handler(request: Request, exc: LibraryError):
    status = STATUS_BY_CODE.get(exc.code, 400)
    if isinstance(exc, StoreFailure):
        logger.error(f"{request.method} {request.url.path}: {exc.message}")
    return JSONResponse(status_code=status, content={"detail": exc.message, "code": exc.code})


# --- Güvenlik ---
api_key_header = APIKeyHeader(name="X-API-Key")


def get_api_key(api_key: str = Security(api_key_header)):
    """API anahtarını doğrulamak için bağımlılık."""
    if api_key == settings.api_key:
        return api_key
    raise HTTPException(status_code=403, detail="Kimlik bilgileri doğrulanamadı")


# --- Modeller ---
class LoanModel(BaseModel):
    id: Optional[str] = None
    student: str
    student_number: Optional[str] = None
    title: str
    barcode: str
    borrow_date: str
    due_date: str
    return_date: Optional[str] = None
    status: str
    remaining_days: int
    overdue_days: int


class BorrowRequest(BaseModel):
    student_number: str = Field(..., description="8 haneli öğrenci numarası")
    barcode: str
    borrow_days: Optional[int] = Field(default=None, ge=1, le=365)


class StatisticsModel(BaseModel):
    total: int
    active: int
    returned: int
    overdue: int
    return_rate: float
    overdue_rate: float


class MonthlyReportModel(BaseModel):
    month: int
    year: int
    month_name: str
    total_borrows: int
    total_returns: int
    active_borrows: int


class RankingModel(BaseModel):
    id: Optional[str] = None
    name: str
    count: int


class CopyModel(BaseModel):
    id: Optional[str] = None
    barcode: str
    copy_number: int
    is_available: bool


class BookModel(BaseModel):
    id: Optional[str] = None
    title: str
    author: str
    isbn: str
    publisher: str = ""
    category: str = ""
    available: int = 0
    copies: int = 0


class BookCreateModel(BaseModel):
    title: str
    author: str
    isbn: str
    publisher: str
    copy_count: int = Field(default=1, ge=1)
    editor: str = ""
    category: str = ""
    description: str = ""


class BookCreatedModel(BaseModel):
    book: BookModel
    copies: List[CopyModel]


class CopyCountModel(BaseModel):
    count: int = Field(default=1, ge=1)


class StudentModel(BaseModel):
    id: Optional[str] = None
    name: str
    surname: str
    student_number: str
    email: str


class StudentCreateModel(BaseModel):
    name: str
    surname: str
    student_number: str
    email: str


class BarcodeCheckModel(BaseModel):
    value: str
    valid: bool
    type: Optional[str] = None
    book_id: Optional[int] = None
    copy_number: Optional[int] = None


# --- Yardımcı Fonksiyonlar ---
def _loan_models(services: Services, loans) -> List[LoanModel]:
    now = services.lending.clock()
    return [LoanModel(**loan_row(services.lending.loan_details(l), now)) for l in loans]


def _book_model(template: BookTemplate, copies: List[BookCopy]) -> BookModel:
    mine = [c for c in copies if c.book_template_id == template.id and not c.is_deleted]
    return BookModel(
        id=template.id,
        title=template.title,
        author=template.author,
        isbn=template.isbn,
        publisher=template.publisher,
        category=template.category,
        available=sum(1 for c in mine if c.is_available),
        copies=len(mine),
    )


def _copy_model(copy: BookCopy) -> CopyModel:
    return CopyModel(id=copy.id, barcode=copy.barcode, copy_number=copy.copy_number, is_available=copy.is_available)


def _student_model(student: Student) -> StudentModel:
    return StudentModel(
        id=student.id,
        name=student.name,
        surname=student.surname,
        student_number=student.student_number,
        email=student.email,
    )


# --- Sağlık Kontrolü ---
@app.get("/health")
def health(services: Services = Depends(get_services)):
    db_ok = True
    try:
        services.repository.fetch_loans()
    except StoreFailure:
        db_ok = False
    return {
        "status": "healthy",
        "timestamp": datetime.utcnow().isoformat() + "Z",
        "db": db_ok,
        "online": services.lending.network.is_online(),
        "total_loans": len(services.lending.snapshot.loans),
    }


# --- Ödünç ---
@app.get("/loans", response_model=List[LoanModel])
def list_loans(
    status: search.LoanStatusFilter = Query(search.LoanStatusFilter.ALL),
    q: str = Query("", description="Öğrenci, kitap ya da barkod"),
    services: Services = Depends(get_services),
):
    lending = services.lending
    loans = search.filter_loans(lending.snapshot.loans, q, status, lending.snapshot, lending.clock())
    return _loan_models(services, loans)


@app.post("/loans/borrow", response_model=LoanModel, status_code=201, dependencies=[Depends(get_api_key)])
def borrow(payload: BorrowRequest, services: Services = Depends(get_services)):
    try:
        loan = services.lending.lend(payload.student_number, payload.barcode, payload.borrow_days)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return _loan_models(services, [loan])[0]


@app.post("/loans/{loan_id}/return", response_model=LoanModel, dependencies=[Depends(get_api_key)])
def return_loan(loan_id: str, services: Services = Depends(get_services)):
    loan = services.lending.return_by_id(loan_id)
    return _loan_models(services, [loan])[0]


@app.get("/loans/statistics", response_model=StatisticsModel)
def loan_statistics(services: Services = Depends(get_services)):
    return StatisticsModel(**services.lending.statistics().to_dict())


@app.get("/loans/overdue", response_model=List[LoanModel])
def overdue(services: Services = Depends(get_services)):
    return _loan_models(services, services.lending.overdue_loans())


@app.get("/loans/upcoming", response_model=List[LoanModel])
def upcoming(
    days: Optional[int] = Query(None, ge=0, le=60),
    services: Services = Depends(get_services),
):
    return _loan_models(services, services.lending.upcoming_due_loans(days))


@app.post("/loans/repair", response_model=List[CopyModel], dependencies=[Depends(get_api_key)])
def repair_availability(services: Services = Depends(get_services)):
    return [_copy_model(c) for c in services.lending.repair_availability()]


# --- Raporlar ---
@app.get("/reports/monthly", response_model=MonthlyReportModel)
def monthly_report(
    month: Optional[int] = Query(None, ge=1, le=12),
    year: Optional[int] = Query(None, ge=2000),
    services: Services = Depends(get_services),
):
    return MonthlyReportModel(**services.lending.monthly_report(month, year).to_dict())


@app.get("/reports/most-borrowed", response_model=List[RankingModel])
def most_borrowed(limit: int = Query(5, ge=1, le=50), services: Services = Depends(get_services)):
    return [
        RankingModel(id=t.id, name=t.title, count=n)
        for t, n in services.lending.most_borrowed_templates(limit)
    ]


@app.get("/reports/most-active", response_model=List[RankingModel])
def most_active(limit: int = Query(5, ge=1, le=50), services: Services = Depends(get_services)):
    return [
        RankingModel(id=s.id, name=s.full_name, count=n)
        for s, n in services.lending.most_active_students(limit)
    ]


# --- Katalog ---
@app.get("/books", response_model=List[BookModel])
def list_books(
    q: str = Query("", description="Başlık, yazar, ISBN veya yayınevi"),
    category: str = Query(search.ALL),
    services: Services = Depends(get_services),
):
    snapshot = services.lending.snapshot
    templates = search.filter_templates(snapshot.templates, q, category)
    return [_book_model(t, snapshot.copies) for t in templates]


@app.get("/books/categories", response_model=List[str])
def list_categories(services: Services = Depends(get_services)):
    return search.categories(services.lending.snapshot.templates)


@app.post("/books", response_model=BookCreatedModel, status_code=201, dependencies=[Depends(get_api_key)])
def add_book(payload: BookCreateModel, services: Services = Depends(get_services)):
    try:
        template, copies = services.catalog.add_book_with_copies(
            payload.title,
            payload.author,
            payload.isbn,
            payload.publisher,
            copy_count=payload.copy_count,
            editor=payload.editor,
            category=payload.category,
            description=payload.description,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    services.lending.refresh()
    return BookCreatedModel(book=_book_model(template, copies), copies=[_copy_model(c) for c in copies])


@app.post("/books/{template_id}/copies", response_model=List[CopyModel], status_code=201, dependencies=[Depends(get_api_key)])
def add_copies(template_id: str, payload: CopyCountModel, services: Services = Depends(get_services)):
    template = services.lending.snapshot.template(template_id)
    if template is None or template.is_deleted:
        raise HTTPException(status_code=404, detail="Kitap bulunamadı.")
    try:
        copies = services.catalog.add_copies(template, payload.count)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    services.lending.refresh()
    return [_copy_model(c) for c in copies]


@app.get("/students", response_model=List[StudentModel])
def list_students(q: str = Query(""), services: Services = Depends(get_services)):
    students = search.filter_students(services.lending.snapshot.students, q)
    return [_student_model(s) for s in students]


@app.post("/students", response_model=StudentModel, status_code=201, dependencies=[Depends(get_api_key)])
def add_student(payload: StudentCreateModel, services: Services = Depends(get_services)):
    try:
        student = services.catalog.add_student(
            payload.name, payload.surname, payload.student_number, payload.email
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    services.lending.refresh()
    return _student_model(student)


@app.get("/students/{student_id}/loans", response_model=Dict[str, List[LoanModel]])
def student_loans(student_id: str, services: Services = Depends(get_services)):
    if services.lending.snapshot.student(student_id) is None:
        raise HTTPException(status_code=404, detail="Öğrenci bulunamadı.")
    active, history = services.lending.student_loans(student_id)
    return {"active": _loan_models(services, active), "history": _loan_models(services, history)}


@app.get("/barcodes/{value}", response_model=BarcodeCheckModel)
def check_barcode(value: str):
    valid = barcode.is_valid_barcode(value)
    parsed = barcode.parse_lib_barcode(value)
    return BarcodeCheckModel(
        value=value,
        valid=valid,
        type=barcode.barcode_type(value).value if valid else None,
        book_id=parsed[0] if parsed else None,
        copy_number=parsed[1] if parsed else None,
    )
