"""
Реестр изображений черновика (Image Ledger).

Единственный источник правды о наборе изображений записи каталога:
локальные файлы, ожидающие загрузки, и уже сохраненные на сервере URL.
В любой момент главным может быть не более одного изображения.
"""

from enum import Enum
from typing import Dict, List, Optional, Sequence, Union

from pydantic import BaseModel, ConfigDict, Field

from shared_kernel import (
    BusinessRuleValidationException,
    EntityId,
    NotFoundError,
    NotReadyError,
    generate_id,
    settings,
)

from .interfaces import IPreviewRegistry

AssetId = EntityId


class ImageRole(str, Enum):
    """Роль изображения в записи каталога."""

    MAIN = "main"
    GALLERY = "gallery"


class PendingAsset(BaseModel):
    """Локальный файл, еще не загруженный на сервер."""

    model_config = ConfigDict(frozen=True)

    id: AssetId
    role: ImageRole
    order: int = Field(..., ge=0)
    blob: bytes = Field(..., repr=False)
    filename: Optional[str] = None
    preview_handle: str


class PersistedAsset(BaseModel):
    """Изображение, подтвержденное сервером (есть постоянный URL)."""

    model_config = ConfigDict(frozen=True)

    id: AssetId
    role: ImageRole
    order: int = Field(..., ge=0)
    url: str


ImageAsset = Union[PendingAsset, PersistedAsset]


class SubmissionImages(BaseModel):
    """Изображения в том виде, в каком их ожидает API каталога."""

    main_url: Optional[str] = None
    gallery_urls: List[str] = Field(default_factory=list)


def normalize_image_url(
    url: str,
    uploads_root: Optional[str] = None,
    preview_schemes: Optional[Sequence[str]] = None,
) -> str:
    """Приводит URL изображения к каноническому виду.

    Локальные ссылки предпросмотра (blob:) никогда не принимаются как
    сохраненные URL. Дублированный путь загрузок (/uploads/public/uploads/...)
    сворачивается до одного сегмента.
    """
    if not url or not url.strip():
        raise BusinessRuleValidationException("URL изображения не может быть пустым")
    url = url.strip()

    schemes = preview_schemes if preview_schemes is not None else settings.local_preview_schemes
    lowered = url.lower()
    for scheme in schemes:
        if scheme.lower() in lowered:
            raise BusinessRuleValidationException(
                f"Локальная ссылка предпросмотра не может быть сохранена: {url}"
            )

    root = "/" + (uploads_root or settings.uploads_root).strip("/")
    duplicates = (
        f"{root}/public{root}/",
        f"/public{root}/",
        f"{root}{root}/",
    )
    previous = None
    while previous != url:
        previous = url
        for duplicate in duplicates:
            url = url.replace(duplicate, f"{root}/")
    return url


class ImageLedger:
    """Набор изображений одного черновика."""

    def __init__(
        self,
        previews: IPreviewRegistry,
        uploads_root: Optional[str] = None,
        preview_schemes: Optional[Sequence[str]] = None,
    ):
        self._previews = previews
        self._uploads_root = uploads_root
        self._preview_schemes = preview_schemes
        self._assets: Dict[AssetId, ImageAsset] = {}
        self._next_order = 0

    def __len__(self) -> int:
        return len(self._assets)

    def __contains__(self, asset_id: object) -> bool:
        return asset_id in self._assets

    def normalize(self, url: str) -> str:
        return normalize_image_url(url, self._uploads_root, self._preview_schemes)

    def get(self, asset_id: AssetId) -> ImageAsset:
        """Возвращает изображение по идентификатору."""
        if asset_id not in self._assets:
            raise NotFoundError(f"Изображение {asset_id} не найдено")
        return self._assets[asset_id]

    def assets(self) -> List[ImageAsset]:
        """Все изображения в порядке добавления."""
        return sorted(self._assets.values(), key=lambda asset: asset.order)

    def pending(self) -> List[PendingAsset]:
        return [a for a in self.assets() if isinstance(a, PendingAsset)]

    def persisted(self) -> List[PersistedAsset]:
        return [a for a in self.assets() if isinstance(a, PersistedAsset)]

    def main(self) -> Optional[ImageAsset]:
        for asset in self._assets.values():
            if asset.role == ImageRole.MAIN:
                return asset
        return None

    def has_pending(self) -> bool:
        return any(isinstance(a, PendingAsset) for a in self._assets.values())

    def attach_local(self, blob: bytes, filename: Optional[str] = None) -> AssetId:
        """Добавляет локальный файл. Первый файл без главного становится главным."""
        role = ImageRole.MAIN if self.main() is None else ImageRole.GALLERY
        asset = PendingAsset(
            id=generate_id(),
            role=role,
            order=self._take_order(),
            blob=blob,
            filename=filename,
            preview_handle=self._previews.create(blob),
        )
        self._assets[asset.id] = asset
        return asset.id

    def attach_persisted(
        self,
        url: str,
        role: ImageRole = ImageRole.GALLERY,
        asset_id: Optional[AssetId] = None,
        order: Optional[int] = None,
    ) -> AssetId:
        """Добавляет уже сохраненное на сервере изображение."""
        url = self.normalize(url)
        if role == ImageRole.MAIN:
            self._clear_main()
        if order is None:
            order = self._take_order()
        else:
            self._next_order = max(self._next_order, order + 1)
        asset = PersistedAsset(
            id=asset_id or generate_id(), role=role, order=order, url=url
        )
        self._assets[asset.id] = asset
        return asset.id

    def promote_to_main(self, asset_id: AssetId) -> None:
        """Делает изображение главным, снимая флаг с предыдущего."""
        asset = self.get(asset_id)
        self._clear_main()
        self._assets[asset_id] = asset.model_copy(update={"role": ImageRole.MAIN})

    def remove(self, asset_id: AssetId) -> ImageAsset:
        """Удаляет изображение.

        Если удалено главное изображение, новое главное не назначается:
        оператор должен выбрать его явно.
        """
        asset = self.get(asset_id)
        del self._assets[asset_id]
        if isinstance(asset, PendingAsset):
            self._previews.revoke(asset.preview_handle)
        return asset

    def resolve(self, asset_id: AssetId, url: str) -> PersistedAsset:
        """Заменяет загруженный файл сохраненной записью с тем же id, ролью и порядком."""
        asset = self.get(asset_id)
        if not isinstance(asset, PendingAsset):
            raise BusinessRuleValidationException(
                f"Изображение {asset_id} уже сохранено на сервере"
            )
        persisted = PersistedAsset(
            id=asset.id, role=asset.role, order=asset.order, url=self.normalize(url)
        )
        self._previews.revoke(asset.preview_handle)
        self._assets[asset_id] = persisted
        return persisted

    def discard_pending(self, asset_id: AssetId) -> None:
        """Отбрасывает файл, который не удалось загрузить."""
        asset = self.get(asset_id)
        if not isinstance(asset, PendingAsset):
            raise BusinessRuleValidationException(
                f"Изображение {asset_id} уже сохранено на сервере"
            )
        self.remove(asset_id)

    def list_for_submission(self) -> SubmissionImages:
        """Возвращает URL для отправки. Все локальные файлы должны быть загружены."""
        if self.has_pending():
            raise NotReadyError("Есть изображения, которые еще не загружены")
        main = self.main()
        return SubmissionImages(
            main_url=main.url if main is not None else None,
            gallery_urls=[
                a.url for a in self.persisted() if a.role == ImageRole.GALLERY
            ],
        )

    def release_all(self) -> None:
        """Освобождает все ссылки предпросмотра и очищает реестр."""
        for asset in self.pending():
            self._previews.revoke(asset.preview_handle)
        self._assets.clear()

    def _clear_main(self) -> None:
        current = self.main()
        if current is not None:
            self._assets[current.id] = current.model_copy(
                update={"role": ImageRole.GALLERY}
            )

    def _take_order(self) -> int:
        order = self._next_order
        self._next_order += 1
        return order
