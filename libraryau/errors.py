"""Ödünç çekirdeğinin fırlattığı hata türleri.

Çağıranın tepki verebileceği her hatanın kendi sınıfı ve sabit bir ``code``
değeri vardır; CLI ve HTTP API genel bir mesaj yerine özel mesaj gösterebilir.
Ham depo istisnaları depo katmanından dışarı çıkmaz, :class:`StoreFailure`
içine sarılır.
"""

from typing import Optional


class LibraryError(Exception):
    """Tüm ödünç çekirdeği hatalarının temel sınıfı."""

    code = "library_error"
    default_message = "Kütüphane işlemi başarısız oldu."

    def __init__(self, message: Optional[str] = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class OfflineError(LibraryError):
    code = "offline"
    default_message = "Bu işlem için internet bağlantısı gerekli."


class PermissionDenied(LibraryError):
    code = "permission_denied"
    default_message = "Bu işlem için yetkiniz bulunmamaktadır."


class NotFound(LibraryError, LookupError):
    code = "not_found"
    default_message = "Kayıt bulunamadı."


class InvalidStudent(LibraryError):
    code = "invalid_student"
    default_message = "Geçersiz öğrenci bilgisi."


class CopyUnavailable(LibraryError):
    code = "copy_unavailable"
    default_message = "Bu kitap şu anda ödünç verilmiş durumda."


class LimitExceeded(LibraryError):
    code = "limit_exceeded"
    default_message = "Öğrenci maksimum kitap sınırına ulaşmış."


class DuplicateTitle(LibraryError):
    code = "duplicate_title"
    default_message = "Öğrenci bu kitabın bir kopyasını zaten ödünç almış."


class AlreadyReturned(LibraryError):
    code = "already_returned"
    default_message = "Bu kitap zaten iade edilmiş."


class StoreFailure(LibraryError):
    code = "store_failure"
    default_message = "Veri deposu isteği tamamlayamadı."
