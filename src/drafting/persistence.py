"""
Сохранение черновиков между перезагрузками страницы (Persistence Adapter).

В снимок попадают значения полей и метаданные только сохраненных на сервере
изображений. Локальные файлы не переживают перезагрузку, поэтому в снимок
не записываются.
"""

from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, ValidationError

from shared_kernel import (
    BusinessRuleValidationException,
    EntityId,
    EntityType,
    ILogger,
    StdLogger,
    now,
    settings,
)

from .domain import DraftEntity, DraftRestored
from .images import ImageRole
from .interfaces import IKeyValueStore, IPreviewRegistry


class PersistedImageRecord(BaseModel):
    """Метаданные сохраненного изображения в снимке."""

    id: EntityId
    url: str
    role: ImageRole
    order: int = Field(..., ge=0)


class DraftSnapshot(BaseModel):
    """Снимок черновика в хранилище."""

    entity_type: EntityType
    entity_id: Optional[int] = None
    fields: Dict[str, Any] = Field(default_factory=dict)
    images: List[PersistedImageRecord] = Field(default_factory=list)
    created_locally_at: datetime
    saved_at: datetime

    def is_expired(self, max_age: timedelta, at: Optional[datetime] = None) -> bool:
        return (at or now()) - self.saved_at > max_age


class DraftPersistenceAdapter:
    """Снимки черновиков, по одному на тип записи."""

    def __init__(
        self,
        store: IKeyValueStore,
        previews: IPreviewRegistry,
        logger: Optional[ILogger] = None,
        key_prefix: Optional[str] = None,
        max_age_hours: Optional[int] = None,
    ):
        self._store = store
        self._previews = previews
        self._logger = logger or StdLogger("travel.drafting.persistence")
        self._key_prefix = key_prefix or settings.draft_key_prefix
        hours = max_age_hours if max_age_hours is not None else settings.draft_max_age_hours
        self._max_age = timedelta(hours=hours)

    def key_for(self, entity_type: EntityType) -> str:
        return f"{self._key_prefix}:{EntityType(entity_type).value}"

    def snapshot(self, draft: DraftEntity) -> None:
        """Полностью перезаписывает снимок черновика."""
        snapshot = DraftSnapshot(
            entity_type=draft.entity_type,
            entity_id=draft.entity_id,
            fields=draft.fields.values(),
            images=[
                PersistedImageRecord(
                    id=asset.id, url=asset.url, role=asset.role, order=asset.order
                )
                for asset in draft.images.persisted()
            ],
            created_locally_at=draft.created_locally_at,
            saved_at=now(),
        )
        self._store.set(self.key_for(draft.entity_type), snapshot.model_dump_json())

    def peek(self, entity_type: EntityType) -> Optional[DraftSnapshot]:
        """Читает снимок без создания черновика. Поврежденный снимок - None."""
        key = self.key_for(entity_type)
        raw = self._store.get(key)
        if raw is None:
            return None
        try:
            snapshot = DraftSnapshot.model_validate_json(raw)
        except ValidationError as e:
            self._logger.warning(
                "Поврежденный снимок черновика проигнорирован",
                key=key,
                error=str(e),
            )
            return None
        if snapshot.entity_type != EntityType(entity_type):
            self._logger.warning(
                "Снимок черновика другого типа проигнорирован",
                key=key,
                stored_type=snapshot.entity_type.value,
            )
            return None
        return snapshot

    def restore(self, entity_type: EntityType) -> Optional[DraftEntity]:
        """Восстанавливает черновик из последнего снимка.

        Не изменяет хранилище: повторные вызовы без snapshot/discard
        возвращают одинаковые значения.
        """
        snapshot = self.peek(entity_type)
        if snapshot is None:
            return None

        draft = DraftEntity.create(
            snapshot.entity_type,
            self._previews,
            values={},
            entity_id=snapshot.entity_id,
            created_locally_at=snapshot.created_locally_at,
        )
        draft.fields.load(draft.fields.schema.revive(dict(snapshot.fields)))
        try:
            for record in sorted(snapshot.images, key=lambda r: r.order):
                draft.images.attach_persisted(
                    record.url, role=record.role, asset_id=record.id, order=record.order
                )
        except BusinessRuleValidationException as e:
            self._logger.warning(
                "Снимок черновика содержит недопустимый URL изображения",
                key=self.key_for(entity_type),
                error=str(e),
            )
            return None

        draft.dirty = False
        draft.record_event(
            DraftRestored(draft_id=draft.id, entity_type=draft.entity_type)
        )
        return draft

    def discard(self, entity_type: EntityType) -> None:
        self._store.delete(self.key_for(entity_type))

    def is_resumable(self, entity_type: EntityType, at: Optional[datetime] = None) -> bool:
        """Есть ли свежий снимок, который можно предложить восстановить."""
        snapshot = self.peek(entity_type)
        return snapshot is not None and not snapshot.is_expired(self._max_age, at)
