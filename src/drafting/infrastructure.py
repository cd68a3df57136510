"""
Инфраструктурный слой контекста черновиков.

Содержит реализации портов: хранилища ключ-значение (в памяти и в JSON-файле),
реестр ссылок предпросмотра и заглушки API каталога и загрузки файлов
для тестов и локального запуска.
"""

import asyncio
import json
from pathlib import Path
from typing import Any, Dict, List, Optional, Set
from uuid import uuid4

from shared_kernel import EntityType, NotFoundError, SubmissionError, UploadError

from . import interfaces as ports


class InMemoryKeyValueStore(ports.IKeyValueStore):
    """Хранилище ключ-значение в памяти."""

    def __init__(self):
        self._data: Dict[str, str] = {}

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> List[str]:
        return list(self._data)


class JsonFileKeyValueStore(ports.IKeyValueStore):
    """Хранилище ключ-значение в JSON-файле."""

    def __init__(self, file_path: str):
        """
        Инициализирует хранилище.

        Args:
            file_path: Путь к JSON-файлу с данными
        """
        self._file_path = Path(file_path)
        self._data: Dict[str, str] = {}
        self._load_data()

    def _load_data(self) -> None:
        """Загружает данные из JSON-файла."""
        if not self._file_path.exists():
            self._data = {}
            return

        with open(self._file_path, "r", encoding="utf-8") as f:
            raw_data = f.read()

        if not raw_data.strip():
            self._data = {}
            return

        self._data = {str(k): str(v) for k, v in json.loads(raw_data).items()}

    def _save_data(self) -> None:
        """Сохраняет данные в JSON-файл."""
        # Создаем директорию, если она не существует
        self._file_path.parent.mkdir(parents=True, exist_ok=True)

        with open(self._file_path, "w", encoding="utf-8") as f:
            json.dump(self._data, f, indent=2, ensure_ascii=False)

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value
        self._save_data()

    def delete(self, key: str) -> None:
        if self._data.pop(key, None) is not None:
            self._save_data()


class InMemoryPreviewRegistry(ports.IPreviewRegistry):
    """Выдает ссылки вида blob:<uuid> и отслеживает неосвобожденные."""

    def __init__(self):
        self._active: Set[str] = set()

    @property
    def active(self) -> Set[str]:
        return set(self._active)

    def create(self, blob: bytes) -> str:
        handle = f"blob:{uuid4()}"
        self._active.add(handle)
        return handle

    def revoke(self, handle: str) -> None:
        self._active.discard(handle)


class InMemoryUploadApi(ports.IUploadApi):
    """Заглушка сервиса загрузки изображений.

    Файлы из failing_filenames завершаются UploadError.
    """

    def __init__(
        self,
        uploads_root: str = "/uploads",
        failing_filenames: Optional[Set[str]] = None,
    ):
        self.uploads_root = uploads_root.rstrip("/")
        self.failing_filenames: Set[str] = set(failing_filenames or ())
        self.uploaded: List[str] = []
        self.calls = 0

    async def upload_image(
        self, blob: bytes, filename: Optional[str] = None
    ) -> Dict[str, str]:
        self.calls += 1
        # Отдаем управление циклу событий, как настоящий сетевой вызов
        await asyncio.sleep(0)
        if filename in self.failing_filenames:
            raise UploadError(f"Сервер отклонил файл {filename}")
        url = f"{self.uploads_root}/{uuid4().hex}-{filename or 'image'}"
        self.uploaded.append(url)
        return {"url": url}


class InMemoryCatalogApi(ports.ICatalogApi):
    """Заглушка REST API каталога."""

    def __init__(self):
        self._records: Dict[EntityType, Dict[int, Dict[str, Any]]] = {}
        self._next_id = 1
        self.failure: Optional[Exception] = None
        self.requests: List[Dict[str, Any]] = []

    def _raise_if_failing(self) -> None:
        if self.failure is not None:
            raise self.failure

    async def create(
        self, entity_type: EntityType, payload: Dict[str, Any]
    ) -> Dict[str, Any]:
        self.requests.append({"op": "create", "type": entity_type, "payload": payload})
        await asyncio.sleep(0)
        self._raise_if_failing()
        entity_id = self._next_id
        self._next_id += 1
        self._records.setdefault(entity_type, {})[entity_id] = dict(payload, id=entity_id)
        return {"id": entity_id}

    async def update(
        self, entity_type: EntityType, entity_id: int, payload: Dict[str, Any]
    ) -> Dict[str, Any]:
        self.requests.append(
            {"op": "update", "type": entity_type, "id": entity_id, "payload": payload}
        )
        await asyncio.sleep(0)
        self._raise_if_failing()
        records = self._records.setdefault(entity_type, {})
        if entity_id not in records:
            raise SubmissionError(f"Запись {entity_type.value}/{entity_id} не найдена")
        records[entity_id] = dict(payload, id=entity_id)
        return {"id": entity_id}

    async def get(self, entity_type: EntityType, entity_id: int) -> Dict[str, Any]:
        records = self._records.get(entity_type, {})
        if entity_id not in records:
            raise NotFoundError(f"Запись {entity_type.value}/{entity_id} не найдена")
        return dict(records[entity_id])

    def seed(self, entity_type: EntityType, payload: Dict[str, Any]) -> int:
        """Добавляет запись напрямую (для тестов)."""
        entity_id = self._next_id
        self._next_id += 1
        self._records.setdefault(entity_type, {})[entity_id] = dict(payload, id=entity_id)
        return entity_id
