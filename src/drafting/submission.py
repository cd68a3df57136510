"""
Конвейер отправки черновика (Submission Pipeline).

Состояния: IDLE -> UPLOADING -> RECONCILING -> SUBMITTING -> DONE | FAILED.
Локальные файлы загружаются параллельно; ошибка загрузки изображения галереи
только записывается, ошибка загрузки главного изображения останавливает
конвейер. Повторный вызов во время работы отклоняется (BusyError).
"""

import asyncio
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel

from shared_kernel import (
    BusyError,
    EntityId,
    ILogger,
    StdLogger,
    SubmissionError,
    UploadError,
    to_minor_units,
)

from .domain import DraftEntity, DraftSubmitted
from .images import ImageRole, PendingAsset
from .interfaces import ICatalogApi, IUploadApi
from .persistence import DraftPersistenceAdapter
from .schemas import ValidationIssue, map_paths

UploadOutcome = Tuple[PendingAsset, Union[str, UploadError]]


class SubmissionState(str, Enum):
    """Состояния конвейера отправки."""

    IDLE = "idle"
    UPLOADING = "uploading"
    RECONCILING = "reconciling"
    SUBMITTING = "submitting"
    DONE = "done"
    FAILED = "failed"


BUSY_STATES = (
    SubmissionState.UPLOADING,
    SubmissionState.RECONCILING,
    SubmissionState.SUBMITTING,
)


class FailedUpload(BaseModel):
    """Изображение галереи, которое не удалось загрузить."""

    asset_id: EntityId
    filename: Optional[str] = None
    reason: str


class SubmissionResult(BaseModel):
    """Итог одного запуска конвейера."""

    state: SubmissionState
    entity_id: Optional[int] = None
    issues: List[ValidationIssue] = Field(default_factory=list)
    failed_uploads: List[FailedUpload] = Field(default_factory=list)
    payload: Optional[Dict[str, Any]] = None

    @property
    def ok(self) -> bool:
        return self.state == SubmissionState.DONE


def _camelize(value: Any) -> Any:
    if isinstance(value, dict):
        return {to_camel(key): _camelize(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_camelize(item) for item in value]
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    return value


def build_payload(draft: DraftEntity) -> Dict[str, Any]:
    """Собирает payload для API каталога.

    Денежные поля переводятся в минимальные единицы, ключи - в camelCase,
    изображения передаются в imageUrl и galleryUrls.
    """
    schema = draft.fields.schema
    form = schema.model_validate(draft.fields.values())
    values = map_paths(form.payload_values(), schema.money_paths, to_minor_units)
    images = draft.images.list_for_submission()
    payload = _camelize(values)
    payload["imageUrl"] = images.main_url
    payload["galleryUrls"] = images.gallery_urls
    return payload


class SubmissionPipeline:
    """Конвейер отправки одного черновика."""

    def __init__(
        self,
        catalog_api: ICatalogApi,
        upload_api: IUploadApi,
        persistence: DraftPersistenceAdapter,
        logger: Optional[ILogger] = None,
    ):
        self._catalog_api = catalog_api
        self._upload_api = upload_api
        self._persistence = persistence
        self._logger = logger or StdLogger("travel.drafting.submission")
        self._state = SubmissionState.IDLE

    @property
    def state(self) -> SubmissionState:
        return self._state

    @property
    def busy(self) -> bool:
        return self._state in BUSY_STATES

    async def submit(self, draft: DraftEntity) -> SubmissionResult:
        """Отправляет черновик.

        Raises:
            BusyError: конвейер уже работает.
            UploadError: не удалось загрузить главное изображение.
            DraftDisposedError: черновик закрыт во время загрузки.
            SubmissionError: API отклонил запрос; черновик и снимок сохранены.
        """
        if self.busy:
            raise BusyError(f"Черновик {draft.id} уже отправляется")
        draft.ensure_active()

        issues = self._check(draft)
        if issues:
            self._transition(SubmissionState.FAILED, draft)
            return SubmissionResult(state=SubmissionState.FAILED, issues=issues)

        try:
            self._transition(SubmissionState.UPLOADING, draft)
            outcomes = await self._upload_pending(draft)

            self._transition(SubmissionState.RECONCILING, draft)
            failed_uploads = self._reconcile(draft, outcomes)

            self._transition(SubmissionState.SUBMITTING, draft)
            payload = build_payload(draft)
            entity_id = await self._send(draft, payload)
        except BaseException:
            self._transition(SubmissionState.FAILED, draft)
            raise

        self._persistence.discard(draft.entity_type)
        draft.entity_id = entity_id
        draft.dirty = False
        draft.record_event(
            DraftSubmitted(
                draft_id=draft.id, entity_type=draft.entity_type, entity_id=entity_id
            )
        )
        draft.dispose()
        self._transition(SubmissionState.DONE, draft)
        return SubmissionResult(
            state=SubmissionState.DONE,
            entity_id=entity_id,
            failed_uploads=failed_uploads,
            payload=payload,
        )

    def _check(self, draft: DraftEntity) -> List[ValidationIssue]:
        issues = list(draft.fields.validate().issues)
        if draft.images.main() is None:
            issues.append(
                ValidationIssue(
                    path="image_url", reason="Необходимо выбрать главное изображение"
                )
            )
        return issues

    async def _upload_pending(self, draft: DraftEntity) -> List[UploadOutcome]:
        # Порядок галереи фиксируется в момент отправки запросов
        pending = draft.images.pending()
        results = await asyncio.gather(
            *(self._upload_one(asset) for asset in pending), return_exceptions=True
        )
        outcomes: List[UploadOutcome] = []
        for asset, result in zip(pending, results):
            if isinstance(result, BaseException) and not isinstance(result, UploadError):
                raise result
            outcomes.append((asset, result))

        for asset, result in outcomes:
            if isinstance(result, UploadError) and asset.role == ImageRole.MAIN:
                self._logger.error(
                    "Не удалось загрузить главное изображение",
                    draft_id=draft.id,
                    asset_id=asset.id,
                    error=str(result),
                )
                raise UploadError(
                    f"Не удалось загрузить главное изображение: {result}"
                ) from result
        return outcomes

    async def _upload_one(self, asset: PendingAsset) -> str:
        response = await self._upload_api.upload_image(asset.blob, asset.filename)
        url = (response or {}).get("url")
        if not url:
            raise UploadError("Сервер не вернул URL загруженного изображения")
        return url

    def _reconcile(
        self, draft: DraftEntity, outcomes: List[UploadOutcome]
    ) -> List[FailedUpload]:
        draft.ensure_active()
        failed: List[FailedUpload] = []
        for asset, result in outcomes:
            if asset.id not in draft.images:
                continue
            if isinstance(result, UploadError):
                self._logger.warning(
                    "Изображение галереи не загружено и будет пропущено",
                    draft_id=draft.id,
                    asset_id=asset.id,
                    error=str(result),
                )
                draft.images.discard_pending(asset.id)
                failed.append(
                    FailedUpload(
                        asset_id=asset.id, filename=asset.filename, reason=str(result)
                    )
                )
            else:
                draft.images.resolve(asset.id, result)
        if outcomes:
            draft.mark_dirty()
            self._persistence.snapshot(draft)
        return failed

    async def _send(self, draft: DraftEntity, payload: Dict[str, Any]) -> int:
        try:
            if draft.is_new:
                response = await self._catalog_api.create(draft.entity_type, payload)
            else:
                response = await self._catalog_api.update(
                    draft.entity_type, draft.entity_id, payload
                )
        except SubmissionError:
            raise
        except Exception as e:
            self._logger.error(
                "API каталога отклонило запрос",
                draft_id=draft.id,
                entity_type=draft.entity_type.value,
                error=str(e),
            )
            raise SubmissionError(f"Не удалось сохранить запись: {e}") from e

        entity_id = (response or {}).get("id")
        if entity_id is None:
            raise SubmissionError("API каталога не вернуло идентификатор записи")
        return entity_id

    def _transition(self, state: SubmissionState, draft: DraftEntity) -> None:
        self._logger.debug(
            "Смена состояния отправки",
            draft_id=draft.id,
            from_state=self._state.value,
            to_state=state.value,
        )
        self._state = state
