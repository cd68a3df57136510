"""
Доменная модель контекста черновиков.

Черновик (DraftEntity) - редактируемая запись каталога (тур, отель, пакет),
которая объединяет хранилище полей и реестр изображений и живет одну сессию
редактирования.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from shared_kernel import (
    DomainEvent,
    DraftDisposedError,
    EntityId,
    EntityType,
    generate_id,
    now,
)

from .fields import FieldStore
from .images import ImageLedger
from .interfaces import IPreviewRegistry
from .schemas import schema_for


class DraftStarted(DomainEvent):
    """Событие начала редактирования."""

    event_type: str = "draft_started"
    draft_id: EntityId
    entity_type: EntityType
    entity_id: Optional[int] = None


class DraftRestored(DomainEvent):
    """Событие восстановления черновика из снимка."""

    event_type: str = "draft_restored"
    draft_id: EntityId
    entity_type: EntityType


class DraftSubmitted(DomainEvent):
    """Событие успешной отправки черновика."""

    event_type: str = "draft_submitted"
    draft_id: EntityId
    entity_type: EntityType
    entity_id: int


class DraftDiscarded(DomainEvent):
    """Событие отказа от черновика."""

    event_type: str = "draft_discarded"
    draft_id: EntityId
    entity_type: EntityType


class DraftEntity:
    """Черновик записи каталога."""

    def __init__(
        self,
        entity_type: EntityType,
        fields: FieldStore,
        images: ImageLedger,
        entity_id: Optional[int] = None,
        created_locally_at: Optional[datetime] = None,
    ):
        self.id: EntityId = generate_id()
        self.entity_type = EntityType(entity_type)
        self.entity_id = entity_id
        self.fields = fields
        self.images = images
        self.created_locally_at = created_locally_at or now()
        self.dirty = False
        self.disposed = False
        self._events: List[DomainEvent] = []
        self.fields.subscribe(self._on_field_changed)

    @classmethod
    def create(
        cls,
        entity_type: EntityType,
        previews: IPreviewRegistry,
        values: Optional[Dict[str, Any]] = None,
        entity_id: Optional[int] = None,
        created_locally_at: Optional[datetime] = None,
        uploads_root: Optional[str] = None,
        preview_schemes: Optional[List[str]] = None,
    ) -> "DraftEntity":
        """Создает черновик с пустым реестром изображений."""
        entity_type = EntityType(entity_type)
        return cls(
            entity_type=entity_type,
            fields=FieldStore(schema_for(entity_type), values),
            images=ImageLedger(previews, uploads_root, preview_schemes),
            entity_id=entity_id,
            created_locally_at=created_locally_at,
        )

    @property
    def is_new(self) -> bool:
        return self.entity_id is None

    def mark_dirty(self) -> None:
        self.dirty = True

    def ensure_active(self) -> None:
        if self.disposed:
            raise DraftDisposedError(f"Черновик {self.id} уже закрыт")

    def dispose(self) -> None:
        """Закрывает черновик и освобождает ссылки предпросмотра."""
        if self.disposed:
            return
        self.images.release_all()
        self.disposed = True

    def record_event(self, event: DomainEvent) -> None:
        self._events.append(event)

    def pull_domain_events(self) -> List[DomainEvent]:
        events = list(self._events)
        self._events.clear()
        return events

    def _on_field_changed(self, path: str) -> None:
        self.dirty = True
