"""LibraryAU - Kütüphane ödünç yönetimi

Bu paket şunları içerir:
- Ödünç kuralları ve ödünç/iade akışı (rules.py, lending.py)
- Barkod üretimi ve doğrulaması (barcode.py)
- Raporlar ve Türkçe duyarlı arama (reports.py, search.py)
- Katalog ve öğrenci yönetimi (catalog.py)
- Belge deposu katmanı (store.py, repository.py)
- CLI (cli.py) ve HTTP API (api.py)
"""

__version__ = "1.0.0"
