import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from .access import NetworkMonitor, Operator, PermissionChecker, StaticNetwork, UserRole
from .catalog import CatalogService
from .config import settings
from .errors import OfflineError
from .lending import LendingLifecycle
from .repository import LibraryRepository
from .store import DocumentStore, SQLiteDocumentStore

logger = logging.getLogger(__name__)


@dataclass
class Services:
    repository: LibraryRepository
    lending: LendingLifecycle
    catalog: CatalogService


def create_services(
    db_file: Optional[str] = None,
    store: Optional[DocumentStore] = None,
    access: Optional[PermissionChecker] = None,
    network: Optional[NetworkMonitor] = None,
    clock: Optional[Callable[[], datetime]] = None,
    load: bool = True,
) -> Services:
    """Yapılandırmadan depo, ödünç ve katalog servislerini kurar.

    ``load`` açıksa snapshot hemen yüklenir; çevrimdışıyken boş snapshot ile
    devam edilir.
    """
    store = store or SQLiteDocumentStore(db_file or settings.database_file)
    access = access or Operator(
        role=UserRole.from_value(settings.operator_role), name=settings.operator_name
    )
    network = network or StaticNetwork(online=not settings.offline_mode)

    repository = LibraryRepository(store)
    lending = LendingLifecycle(repository, access, network, clock=clock)
    catalog = CatalogService(repository, access, network, clock=clock)
    if load:
        try:
            lending.refresh()
        except OfflineError:
            logger.warning("Çevrimdışı: veriler yüklenemedi, boş liste ile devam ediliyor")
    return Services(repository=repository, lending=lending, catalog=catalog)
