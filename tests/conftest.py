"""
Конфигурация тестов для pytest.
Добавляет директорию src в PYTHONPATH и общие фикстуры.
"""
import sys
from datetime import date
from decimal import Decimal
from pathlib import Path

import pytest

# Добавляем директорию с исходным кодом в PYTHONPATH
src_dir = str(Path(__file__).parent.parent / "src")
if src_dir not in sys.path:
    sys.path.insert(0, src_dir)

from drafting.application import DraftSessionService  # noqa: E402
from drafting.infrastructure import (  # noqa: E402
    InMemoryCatalogApi,
    InMemoryKeyValueStore,
    InMemoryPreviewRegistry,
    InMemoryUploadApi,
)
from drafting.persistence import DraftPersistenceAdapter  # noqa: E402


def make_tour_values(**overrides):
    """Корректные значения формы тура (с 1 по 7 марта, 7 дней)."""
    values = {
        "name": "Пирамиды Гизы",
        "description": "Недельный тур по Каиру с посещением пирамид",
        "destination_id": 1,
        "trip_type": "group",
        "duration": 7,
        "duration_type": "days",
        "start_date": date(2025, 3, 1),
        "end_date": date(2025, 3, 7),
        "price": Decimal("1000.00"),
        "discounted_price": Decimal("900.00"),
        "itinerary": "День 1: прибытие. День 2: пирамиды и Сфинкс.",
        "currency": "USD",
    }
    values.update(overrides)
    return values


@pytest.fixture
def tour_values():
    return make_tour_values()


@pytest.fixture
def previews():
    return InMemoryPreviewRegistry()


@pytest.fixture
def store():
    return InMemoryKeyValueStore()


@pytest.fixture
def catalog_api():
    return InMemoryCatalogApi()


@pytest.fixture
def upload_api():
    return InMemoryUploadApi(uploads_root="/uploads")


@pytest.fixture
def persistence(store, previews):
    return DraftPersistenceAdapter(store, previews, key_prefix="draft", max_age_hours=72)


@pytest.fixture
def service(catalog_api, upload_api, store, previews, persistence):
    """Сервис черновиков с адаптерами в памяти."""
    return DraftSessionService(
        catalog_api, upload_api, store, previews, persistence=persistence
    )
