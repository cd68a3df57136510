"""
Прикладной слой контекста черновиков.

DraftSessionService координирует жизненный цикл черновика: создание,
восстановление, загрузку существующей записи, автосохранение после каждого
изменения и отправку. Метод submit - верхний обработчик ошибок отправки:
он превращает исключения в сообщение для оператора.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_snake

from shared_kernel import (
    BusinessRuleValidationException,
    BusyError,
    DomainException,
    DraftDisposedError,
    EntityId,
    EntityType,
    ILogger,
    StdLogger,
    SubmissionError,
    UploadError,
    to_major_units,
)

from . import interfaces as ports
from .domain import DraftDiscarded, DraftEntity, DraftStarted
from .images import AssetId, ImageRole
from .persistence import DraftPersistenceAdapter
from .schemas import ValidationIssue, ValidationResult, map_paths, schema_for
from .submission import FailedUpload, SubmissionPipeline, SubmissionState

# DTO для исходящих данных


class SubmitOutcome(BaseModel):
    """Результат отправки для отображения оператору."""

    success: bool
    state: SubmissionState
    entity_id: Optional[int] = None
    message: str
    issues: List[ValidationIssue] = Field(default_factory=list)
    failed_uploads: List[FailedUpload] = Field(default_factory=list)


def _snake_keys(value: Any) -> Any:
    if isinstance(value, dict):
        return {to_snake(key): _snake_keys(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_snake_keys(item) for item in value]
    return value


# Сервисы приложения


class DraftSessionService:
    """Сервис приложения для редактирования записей каталога."""

    def __init__(
        self,
        catalog_api: ports.ICatalogApi,
        upload_api: ports.IUploadApi,
        store: ports.IKeyValueStore,
        previews: ports.IPreviewRegistry,
        logger: Optional[ILogger] = None,
        persistence: Optional[DraftPersistenceAdapter] = None,
    ):
        """Инициализирует сервис."""
        self._catalog_api = catalog_api
        self._upload_api = upload_api
        self._previews = previews
        self._logger = logger or StdLogger("travel.drafting")
        self.persistence = persistence or DraftPersistenceAdapter(
            store, previews, logger=self._logger
        )
        self._pipelines: Dict[EntityId, SubmissionPipeline] = {}

    # Открытие черновика

    def start(self, entity_type: EntityType) -> DraftEntity:
        """Начинает новую запись с пустыми полями."""
        draft = DraftEntity.create(entity_type, self._previews)
        draft.record_event(
            DraftStarted(draft_id=draft.id, entity_type=draft.entity_type)
        )
        self._track(draft)
        return draft

    def has_resumable_draft(self, entity_type: EntityType) -> bool:
        return self.persistence.is_resumable(entity_type)

    def resume(self, entity_type: EntityType) -> Optional[DraftEntity]:
        """Восстанавливает сохраненный черновик, если он не устарел."""
        if not self.persistence.is_resumable(entity_type):
            if self.persistence.peek(entity_type) is not None:
                self._logger.info(
                    "Устаревший черновик удален", entity_type=EntityType(entity_type).value
                )
                self.persistence.discard(entity_type)
            return None
        draft = self.persistence.restore(entity_type)
        if draft is not None:
            self._track(draft)
        return draft

    async def load(self, entity_type: EntityType, entity_id: int) -> DraftEntity:
        """Открывает существующую запись для редактирования.

        Суммы из API (минимальные единицы) переводятся в основные единицы.
        """
        entity_type = EntityType(entity_type)
        payload = _snake_keys(await self._catalog_api.get(entity_type, entity_id))
        image_url = payload.pop("image_url", None)
        gallery_urls = payload.pop("gallery_urls", None) or []
        payload.pop("id", None)

        schema = schema_for(entity_type)
        values = map_paths(payload, schema.money_paths, to_major_units)
        values = schema.revive(values)

        draft = DraftEntity.create(
            entity_type, self._previews, values=values, entity_id=entity_id
        )
        if image_url:
            self._attach_existing(draft, image_url, ImageRole.MAIN)
        for url in gallery_urls:
            self._attach_existing(draft, url, ImageRole.GALLERY)
        draft.record_event(
            DraftStarted(
                draft_id=draft.id, entity_type=entity_type, entity_id=entity_id
            )
        )
        self._track(draft)
        return draft

    # Редактирование полей

    def set_field(self, draft: DraftEntity, path: str, value: Any) -> None:
        draft.ensure_active()
        draft.fields.set(path, value)

    def append_child(
        self, draft: DraftEntity, array_path: str, record: Dict[str, Any]
    ) -> int:
        draft.ensure_active()
        return draft.fields.append_child(array_path, record)

    def remove_child(self, draft: DraftEntity, array_path: str, index: int) -> None:
        draft.ensure_active()
        draft.fields.remove_child(array_path, index)

    def validate(self, draft: DraftEntity) -> ValidationResult:
        return draft.fields.validate()

    # Изображения

    def attach_image(
        self, draft: DraftEntity, blob: bytes, filename: Optional[str] = None
    ) -> AssetId:
        draft.ensure_active()
        asset_id = draft.images.attach_local(blob, filename)
        self._images_changed(draft)
        return asset_id

    def promote_image(self, draft: DraftEntity, asset_id: AssetId) -> None:
        draft.ensure_active()
        draft.images.promote_to_main(asset_id)
        self._images_changed(draft)

    def remove_image(self, draft: DraftEntity, asset_id: AssetId) -> None:
        draft.ensure_active()
        draft.images.remove(asset_id)
        self._images_changed(draft)

    # Завершение

    def discard(self, draft: DraftEntity) -> None:
        """Отказ от черновика: снимок удаляется, ресурсы освобождаются."""
        self.persistence.discard(draft.entity_type)
        draft.record_event(
            DraftDiscarded(draft_id=draft.id, entity_type=draft.entity_type)
        )
        draft.dispose()
        self._pipelines.pop(draft.id, None)

    def pipeline_for(self, draft: DraftEntity) -> SubmissionPipeline:
        if draft.id not in self._pipelines:
            self._pipelines[draft.id] = SubmissionPipeline(
                self._catalog_api, self._upload_api, self.persistence, self._logger
            )
        return self._pipelines[draft.id]

    async def submit(self, draft: DraftEntity) -> SubmitOutcome:
        """Отправляет черновик и возвращает сообщение для оператора."""
        pipeline = self.pipeline_for(draft)
        try:
            result = await pipeline.submit(draft)
        except BusyError:
            self._logger.warning("Повторная отправка отклонена", draft_id=draft.id)
            return SubmitOutcome(
                success=False,
                state=pipeline.state,
                message="Запись уже сохраняется, дождитесь завершения",
            )
        except UploadError as e:
            return SubmitOutcome(
                success=False,
                state=pipeline.state,
                message=f"Не удалось загрузить главное изображение. {e}",
            )
        except DraftDisposedError:
            self._logger.info(
                "Черновик закрыт во время отправки, результаты загрузки отброшены",
                draft_id=draft.id,
            )
            return SubmitOutcome(
                success=False,
                state=pipeline.state,
                message="Редактирование было отменено",
            )
        except SubmissionError as e:
            self._logger.error("Ошибка отправки черновика", draft_id=draft.id, error=str(e))
            return SubmitOutcome(
                success=False,
                state=pipeline.state,
                message="Не удалось сохранить запись. Данные черновика сохранены, "
                "попробуйте еще раз",
            )
        except DomainException as e:
            self._logger.error(
                "Внутренняя ошибка при отправке черновика",
                draft_id=draft.id,
                error=repr(e),
            )
            return SubmitOutcome(
                success=False,
                state=pipeline.state,
                message="Произошла внутренняя ошибка",
            )

        if not result.ok:
            return SubmitOutcome(
                success=False,
                state=result.state,
                message="Исправьте ошибки в форме",
                issues=result.issues,
            )

        self._pipelines.pop(draft.id, None)
        self._logger.info(
            "Запись сохранена",
            entity_type=draft.entity_type.value,
            entity_id=result.entity_id,
            failed_uploads=len(result.failed_uploads),
        )
        message = "Запись сохранена"
        if result.failed_uploads:
            message += f", но {len(result.failed_uploads)} изображений галереи не загружено"
        return SubmitOutcome(
            success=True,
            state=result.state,
            entity_id=result.entity_id,
            message=message,
            failed_uploads=result.failed_uploads,
        )

    def _track(self, draft: DraftEntity) -> None:
        draft.fields.subscribe(lambda path: self._autosave(draft))

    def _images_changed(self, draft: DraftEntity) -> None:
        draft.mark_dirty()
        self._autosave(draft)

    def _autosave(self, draft: DraftEntity) -> None:
        if not draft.disposed:
            self.persistence.snapshot(draft)

    def _attach_existing(self, draft: DraftEntity, url: str, role: ImageRole) -> None:
        try:
            draft.images.attach_persisted(url, role=role)
        except BusinessRuleValidationException as e:
            self._logger.warning(
                "Изображение записи пропущено", entity_id=draft.entity_id, error=str(e)
            )
