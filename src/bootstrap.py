from typing import Optional

from drafting.application import DraftSessionService
from drafting.infrastructure import (
    InMemoryCatalogApi,
    InMemoryKeyValueStore,
    InMemoryPreviewRegistry,
    InMemoryUploadApi,
    JsonFileKeyValueStore,
)
from drafting.persistence import DraftPersistenceAdapter
from quotation.application import create_quotation_service
from shared_kernel import StdLogger, configure_logging, settings


def bootstrap_app(drafts_file: Optional[str] = None):
    """Создает и настраивает все компоненты приложения."""
    # 1. Логирование
    configure_logging()
    logger = StdLogger("travel")

    # 2. Адаптеры внешних систем
    store = JsonFileKeyValueStore(drafts_file) if drafts_file else InMemoryKeyValueStore()
    previews = InMemoryPreviewRegistry()
    catalog_api = InMemoryCatalogApi()
    upload_api = InMemoryUploadApi(uploads_root=settings.uploads_root)

    # 3. Сервисы, зависимости передаются явно
    persistence = DraftPersistenceAdapter(store, previews, logger=logger)
    drafting_service = DraftSessionService(
        catalog_api,
        upload_api,
        store,
        previews,
        logger=logger,
        persistence=persistence,
    )
    quotation_service = create_quotation_service(logger=logger)

    # Возвращаем настроенные компоненты
    return {
        "drafting_service": drafting_service,
        "quotation_service": quotation_service,
        "catalog_api": catalog_api,
        "upload_api": upload_api,
        "store": store,
    }
