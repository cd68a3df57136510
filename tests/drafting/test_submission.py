"""
Тесты конвейера отправки черновика.
"""

import asyncio

import pytest
from drafting.domain import DraftEntity, DraftSubmitted
from drafting.images import ImageRole, PendingAsset
from drafting.infrastructure import InMemoryUploadApi
from drafting.submission import SubmissionPipeline, SubmissionState, build_payload
from shared_kernel import (
    BusyError,
    DraftDisposedError,
    EntityType,
    SubmissionError,
    UploadError,
)


class GatedUploadApi(InMemoryUploadApi):
    """Загрузка, которая ждет разрешения теста."""

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.gate = asyncio.Event()

    async def upload_image(self, blob, filename=None):
        await self.gate.wait()
        return await super().upload_image(blob, filename)


@pytest.fixture
def draft(previews, tour_values):
    return DraftEntity.create(
        EntityType.TOUR, previews, values=tour_values, uploads_root="/uploads"
    )


@pytest.fixture
def pipeline(catalog_api, upload_api, persistence):
    return SubmissionPipeline(catalog_api, upload_api, persistence)


class TestSubmissionPipeline:
    """Тесты для SubmissionPipeline."""

    async def test_new_record_is_created(self, pipeline, draft, catalog_api, store, persistence):
        # Подготовка
        draft.images.attach_local(b"main", "main.jpg")
        draft.images.attach_local(b"g1", "g1.jpg")
        persistence.snapshot(draft)

        # Действие
        result = await pipeline.submit(draft)

        # Проверка
        assert result.ok
        assert result.state == SubmissionState.DONE
        assert pipeline.state == SubmissionState.DONE
        assert result.entity_id == 1
        payload = catalog_api.requests[0]["payload"]
        assert catalog_api.requests[0]["op"] == "create"
        assert payload["price"] == 100000
        assert payload["discountedPrice"] == 90000
        assert payload["startDate"] == "2025-03-01"
        assert payload["destinationId"] == 1
        assert payload["currency"] == "USD"
        assert payload["imageUrl"].startswith("/uploads/")
        assert payload["imageUrl"].endswith("main.jpg")
        assert len(payload["galleryUrls"]) == 1
        assert store.get("draft:tour") is None
        assert draft.disposed
        assert draft.entity_id == 1
        assert any(isinstance(e, DraftSubmitted) for e in draft.pull_domain_events())

    async def test_local_previews_are_released(self, pipeline, draft, previews):
        draft.images.attach_local(b"main", "main.jpg")

        await pipeline.submit(draft)

        assert previews.active == set()

    async def test_existing_record_is_updated(self, catalog_api, upload_api, persistence, previews, tour_values):
        entity_id = catalog_api.seed(EntityType.TOUR, {"name": "old"})
        draft = DraftEntity.create(EntityType.TOUR, previews, values=tour_values, entity_id=entity_id)
        draft.images.attach_persisted("/uploads/main.jpg", role=ImageRole.MAIN)
        pipeline = SubmissionPipeline(catalog_api, upload_api, persistence)

        result = await pipeline.submit(draft)

        assert result.entity_id == entity_id
        assert catalog_api.requests[0]["op"] == "update"
        assert upload_api.calls == 0
        stored = await catalog_api.get(EntityType.TOUR, entity_id)
        assert stored["imageUrl"] == "/uploads/main.jpg"
        assert stored["galleryUrls"] == []

    async def test_failed_gallery_upload_is_skipped(self, catalog_api, persistence, draft):
        # Подготовка: главное и три изображения галереи, второе не загрузится
        upload_api = InMemoryUploadApi(uploads_root="/uploads", failing_filenames={"g2.jpg"})
        pipeline = SubmissionPipeline(catalog_api, upload_api, persistence)
        draft.images.attach_local(b"main", "main.jpg")
        draft.images.attach_local(b"1", "g1.jpg")
        failing = draft.images.attach_local(b"2", "g2.jpg")
        draft.images.attach_local(b"3", "g3.jpg")

        # Действие
        result = await pipeline.submit(draft)

        # Проверка
        assert result.state == SubmissionState.DONE
        gallery = result.payload["galleryUrls"]
        assert len(gallery) == 2
        assert gallery[0].endswith("g1.jpg")
        assert gallery[1].endswith("g3.jpg")
        assert [f.asset_id for f in result.failed_uploads] == [failing]
        assert result.failed_uploads[0].filename == "g2.jpg"

    async def test_failed_main_upload_stops_pipeline(self, catalog_api, persistence, store, draft):
        # Подготовка
        upload_api = InMemoryUploadApi(uploads_root="/uploads", failing_filenames={"main.jpg"})
        pipeline = SubmissionPipeline(catalog_api, upload_api, persistence)
        draft.images.attach_local(b"main", "main.jpg")
        draft.images.attach_local(b"1", "g1.jpg")
        persistence.snapshot(draft)
        snapshot_before = store.get("draft:tour")
        assets_before = draft.images.assets()

        # Действие
        with pytest.raises(UploadError):
            await pipeline.submit(draft)

        # Проверка: ни реестр, ни снимок не изменились
        assert pipeline.state == SubmissionState.FAILED
        assert draft.images.assets() == assets_before
        assert all(isinstance(a, PendingAsset) for a in draft.images.assets())
        assert store.get("draft:tour") == snapshot_before
        assert catalog_api.requests == []
        assert not draft.disposed

    async def test_validation_issues_are_returned(self, pipeline, draft, upload_api, catalog_api):
        draft.fields.set("name", "")
        draft.images.attach_local(b"main", "main.jpg")

        result = await pipeline.submit(draft)

        assert result.state == SubmissionState.FAILED
        assert [issue.path for issue in result.issues] == ["name"]
        assert upload_api.calls == 0
        assert catalog_api.requests == []

    async def test_main_image_is_required(self, pipeline, draft):
        main = draft.images.attach_local(b"main", "main.jpg")
        draft.images.attach_local(b"1", "g1.jpg")
        draft.images.remove(main)

        result = await pipeline.submit(draft)

        assert not result.ok
        assert [issue.path for issue in result.issues] == ["image_url"]

    async def test_second_submit_is_rejected_while_busy(self, catalog_api, persistence, draft):
        upload_api = GatedUploadApi(uploads_root="/uploads")
        pipeline = SubmissionPipeline(catalog_api, upload_api, persistence)
        draft.images.attach_local(b"main", "main.jpg")

        first = asyncio.create_task(pipeline.submit(draft))
        await asyncio.sleep(0)

        assert pipeline.busy
        with pytest.raises(BusyError):
            await pipeline.submit(draft)

        upload_api.gate.set()
        result = await first
        assert result.ok
        assert len(catalog_api.requests) == 1

    async def test_dispose_during_upload_discards_results(self, catalog_api, persistence, draft):
        upload_api = GatedUploadApi(uploads_root="/uploads")
        pipeline = SubmissionPipeline(catalog_api, upload_api, persistence)
        draft.images.attach_local(b"main", "main.jpg")

        task = asyncio.create_task(pipeline.submit(draft))
        await asyncio.sleep(0)
        draft.dispose()
        upload_api.gate.set()

        with pytest.raises(DraftDisposedError):
            await task
        assert pipeline.state == SubmissionState.FAILED
        assert catalog_api.requests == []

    async def test_api_failure_keeps_draft(self, pipeline, draft, catalog_api, upload_api, persistence):
        # Подготовка
        draft.images.attach_local(b"main", "main.jpg")
        catalog_api.failure = ConnectionError("сеть недоступна")

        # Действие
        with pytest.raises(SubmissionError):
            await pipeline.submit(draft)

        # Проверка: загруженные изображения сохранены в черновике и снимке
        assert pipeline.state == SubmissionState.FAILED
        assert not draft.disposed
        assert not draft.images.has_pending()
        snapshot = persistence.peek(EntityType.TOUR)
        assert snapshot is not None
        assert snapshot.images[0].role == ImageRole.MAIN

        # Повторная отправка не загружает файлы заново
        catalog_api.failure = None
        result = await pipeline.submit(draft)
        assert result.ok
        assert upload_api.calls == 1

    async def test_disposed_draft_cannot_be_submitted(self, pipeline, draft):
        draft.dispose()

        with pytest.raises(DraftDisposedError):
            await pipeline.submit(draft)


class TestBuildPayload:
    """Тесты сборки payload для API каталога."""

    def test_hotel_room_prices_in_minor_units(self, previews):
        draft = DraftEntity.create(
            EntityType.HOTEL,
            previews,
            values={
                "name": "Nile View",
                "destination_id": 2,
                "address": "Corniche 5",
                "room_types": [{"name": "Double", "capacity": 2, "price": "80.50"}],
                "currency": "EGP",
            },
        )
        draft.images.attach_persisted("/uploads/h.jpg", role=ImageRole.MAIN)

        payload = build_payload(draft)

        assert payload["roomTypes"][0]["price"] == 8050
        assert payload["imageUrl"] == "/uploads/h.jpg"

    def test_package_discount_is_derived(self, previews):
        draft = DraftEntity.create(
            EntityType.PACKAGE,
            previews,
            values={
                "title": "Красное море",
                "price": "1000",
                "discount_type": "percentage",
                "discount_value": "10",
                "destination_id": 3,
                "category_id": 1,
                "duration": 5,
                "hotels": [{"name": "Reef", "stars": 4, "rooms": [{"type": "Double", "price_per_night": "45"}]}],
                "currency": "USD",
            },
        )
        draft.images.attach_persisted("/uploads/p.jpg", role=ImageRole.MAIN)

        payload = build_payload(draft)

        assert payload["price"] == 100000
        assert payload["discountedPrice"] == 90000
        assert payload["discountType"] == "percentage"
        assert payload["hotels"][0]["rooms"][0]["pricePerNight"] == 4500
