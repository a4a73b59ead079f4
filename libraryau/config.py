import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

load_dotenv()


def _env_flag(name: str, default: str = "False") -> bool:
    return os.getenv(name, default).lower() in ("true", "1", "yes")


@dataclass
class Settings:
    # Uygulama Ayarları
    app_name: str = os.getenv("APP_NAME", "Kütüphane Ödünç Sistemi")
    app_version: str = os.getenv("APP_VERSION", "1.0.0")
    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    # API Ayarları
    api_host: str = os.getenv("API_HOST", "127.0.0.1")
    api_port: int = int(os.getenv("API_PORT", "8000"))
    api_key: str = os.getenv("API_KEY", "super-secret-key")

    # Veritabanı Ayarları
    database_file: str = os.getenv("LIBRARY_DB_FILE", "library.db")

    # Ödünç Kuralları
    max_books_per_student: int = int(os.getenv("MAX_BOOKS_PER_STUDENT", "3"))
    default_borrow_days: int = int(os.getenv("DEFAULT_BORROW_DAYS", "14"))
    warning_days_before_due: int = int(os.getenv("WARNING_DAYS_BEFORE_DUE", "2"))
    max_copies_per_batch: int = int(os.getenv("MAX_COPIES_PER_BATCH", "10"))

    # Operatör ve bağlantı
    operator_role: str = os.getenv("OPERATOR_ROLE", "admin")
    operator_name: Optional[str] = os.getenv("OPERATOR_NAME")
    offline_mode: bool = _env_flag("OFFLINE_MODE")
    reconcile_on_load: bool = _env_flag("RECONCILE_ON_LOAD", "True")


settings = Settings()
