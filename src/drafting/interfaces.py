"""
Интерфейсы (порты) для контекста черновиков.

Внешние сервисы (REST API каталога, загрузка файлов, локальное хранилище,
предпросмотр файлов) доступны только через эти протоколы.
"""

from __future__ import annotations

from typing import Any, Dict, Optional, Protocol

from shared_kernel import EntityType, ILogger

__all__ = [
    "ICatalogApi",
    "IUploadApi",
    "IKeyValueStore",
    "IPreviewRegistry",
    "ILogger",
]


class ICatalogApi(Protocol):
    """Интерфейс REST API каталога.

    Денежные поля в payload передаются в минимальных единицах, изображения -
    в полях imageUrl и galleryUrls.
    """

    async def create(
        self, entity_type: EntityType, payload: Dict[str, Any]
    ) -> Dict[str, Any]: ...
    async def update(
        self, entity_type: EntityType, entity_id: int, payload: Dict[str, Any]
    ) -> Dict[str, Any]: ...
    async def get(self, entity_type: EntityType, entity_id: int) -> Dict[str, Any]: ...


class IUploadApi(Protocol):
    """Интерфейс загрузки изображений.

    При ошибке выбрасывает UploadError, частичного результата не бывает.
    """

    async def upload_image(
        self, blob: bytes, filename: Optional[str] = None
    ) -> Dict[str, str]: ...


class IKeyValueStore(Protocol):
    """Долговременное хранилище ключ-значение (аналог localStorage)."""

    def get(self, key: str) -> Optional[str]: ...
    def set(self, key: str, value: str) -> None: ...
    def delete(self, key: str) -> None: ...


class IPreviewRegistry(Protocol):
    """Выдает и освобождает локальные ссылки предпросмотра для файлов."""

    def create(self, blob: bytes) -> str: ...
    def revoke(self, handle: str) -> None: ...
