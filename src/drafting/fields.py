"""
Хранилище полей черновика (Field Store).

Поля адресуются путями вида name, restaurants[2].cuisine_type или
hotels[0].rooms[1].price_per_night. Денежные значения хранятся в основных
единицах, как их видит оператор.
"""

import copy
import math
import re
from datetime import date, datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Type, Union

from pydantic import ValidationError

from shared_kernel import InvalidPathError

from .schemas import FormModel, ValidationIssue, ValidationResult, issues_from_error

_SEGMENT = re.compile(r"^([A-Za-z_]\w*)((?:\[\d+\])*)$")
_INDEX = re.compile(r"\[(\d+)\]")
_MISSING = object()

PathPart = Union[str, int]
ChangeListener = Callable[[str], None]


def parse_path(path: str) -> List[PathPart]:
    """Разбирает путь на ключи и индексы."""
    if not isinstance(path, str) or not path:
        raise InvalidPathError(f"Некорректный путь: {path!r}")
    parts: List[PathPart] = []
    for segment in path.split("."):
        match = _SEGMENT.match(segment)
        if match is None:
            raise InvalidPathError(f"Некорректный путь: {path!r}")
        parts.append(match.group(1))
        parts.extend(int(index) for index in _INDEX.findall(match.group(2)))
    return parts


def _as_datetime(value: Any) -> Optional[datetime]:
    """Приводит дату к наивному datetime в UTC, чтобы даты можно было сравнивать."""
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value)
        except ValueError:
            return None
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc).replace(tzinfo=None)
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    return None


class FieldStore:
    """Скалярные поля и вложенные массивы записей одного черновика."""

    def __init__(self, schema: Type[FormModel], values: Optional[Dict[str, Any]] = None):
        self._schema = schema
        self._values: Dict[str, Any] = copy.deepcopy(values) if values else {}
        self._schema.coerce_numbers(self._values)
        self._listeners: List[ChangeListener] = []

    @property
    def schema(self) -> Type[FormModel]:
        return self._schema

    def subscribe(self, listener: ChangeListener) -> None:
        """Подписывает обработчик, вызываемый после каждого изменения."""
        self._listeners.append(listener)

    def values(self) -> Dict[str, Any]:
        """Копия всех значений."""
        return copy.deepcopy(self._values)

    def load(self, values: Dict[str, Any]) -> None:
        """Заменяет все значения (например, при загрузке записи с сервера)."""
        self._values = copy.deepcopy(values)
        self._schema.coerce_numbers(self._values)
        self._notify("")

    def get(self, path: str, default: Any = None) -> Any:
        parts = parse_path(path)
        node: Any = self._values
        for part in parts:
            node = self._step(node, part, path, default=_MISSING)
            if node is _MISSING:
                return default
        return copy.deepcopy(node)

    def set(self, path: str, value: Any) -> None:
        parts = parse_path(path)
        parent = self._walk_to_parent(parts, path)
        last = parts[-1]
        if isinstance(last, int):
            if not isinstance(parent, list) or not 0 <= last < len(parent):
                raise InvalidPathError(f"Индекс вне диапазона: {path}")
        elif not isinstance(parent, dict):
            raise InvalidPathError(f"Поле {path} не является объектом")
        parent[last] = copy.deepcopy(value)
        self._schema.coerce_numbers(self._values)
        self._notify(path)

    def append_child(self, array_path: str, record: Dict[str, Any]) -> int:
        """Добавляет запись во вложенный массив и возвращает ее индекс."""
        items = self._array(array_path, create=True)
        items.append(copy.deepcopy(record))
        self._schema.coerce_numbers(self._values)
        index = len(items) - 1
        self._notify(f"{array_path}[{index}]")
        return index

    def remove_child(self, array_path: str, index: int) -> Dict[str, Any]:
        """Удаляет запись из вложенного массива."""
        items = self._array(array_path, create=False)
        if not 0 <= index < len(items):
            raise InvalidPathError(f"Индекс вне диапазона: {array_path}[{index}]")
        removed = items.pop(index)
        self._notify(array_path)
        return removed

    def validate(self) -> ValidationResult:
        """Проверяет поля.

        Сначала применяется правило дат: если обе даты заданы и упорядочены,
        длительность пересчитывается как ceil(дней между датами) + 1 и
        заменяет введенное вручную значение. Затем поля проверяются схемой.
        Ошибки пользователя возвращаются как данные, а не исключения.
        """
        issues: List[ValidationIssue] = []
        issues.extend(self._apply_duration_rule())
        try:
            self._schema.model_validate(self._values)
        except ValidationError as e:
            issues.extend(issues_from_error(e))
        return ValidationResult(issues=issues)

    def _apply_duration_rule(self) -> List[ValidationIssue]:
        if "duration" not in self._schema.model_fields:
            return []
        start = _as_datetime(self._values.get("start_date"))
        end = _as_datetime(self._values.get("end_date"))
        if start is None or end is None:
            return []
        if end < start:
            return [
                ValidationIssue(
                    path="end_date",
                    reason="Дата окончания не может быть раньше даты начала",
                )
            ]
        days = math.ceil(abs((end - start).total_seconds()) / 86400) + 1
        if self._values.get("duration") != days:
            self.set("duration", days)
        return []

    def _array(self, array_path: str, create: bool) -> List[Any]:
        parts = parse_path(array_path)
        parent = self._walk_to_parent(parts, array_path)
        last = parts[-1]
        if isinstance(last, int):
            if not isinstance(parent, list) or not 0 <= last < len(parent):
                raise InvalidPathError(f"Индекс вне диапазона: {array_path}")
        elif not isinstance(parent, dict):
            raise InvalidPathError(f"Поле {array_path} не является объектом")
        elif last not in parent or parent[last] is None:
            if not create:
                raise InvalidPathError(f"Массив {array_path} не найден")
            parent[last] = []
        items = parent[last]
        if not isinstance(items, list):
            raise InvalidPathError(f"Поле {array_path} не является массивом")
        return items

    def _walk_to_parent(self, parts: List[PathPart], path: str) -> Any:
        node: Any = self._values
        for part, following in zip(parts[:-1], parts[1:]):
            child = self._step(node, part, path, default=_MISSING)
            if child is _MISSING:
                # Промежуточные объекты создаются, массивы - нет
                if isinstance(following, int):
                    raise InvalidPathError(f"Массив для пути {path} не найден")
                child = {}
                node[part] = child
            node = child
        return node

    @staticmethod
    def _step(node: Any, part: PathPart, path: str, default: Any) -> Any:
        if isinstance(part, int):
            if not isinstance(node, list):
                raise InvalidPathError(f"Поле в пути {path} не является массивом")
            if not 0 <= part < len(node):
                raise InvalidPathError(f"Индекс вне диапазона: {path}")
            return node[part]
        if not isinstance(node, dict):
            raise InvalidPathError(f"Поле в пути {path} не является объектом")
        return node.get(part, default)

    def _notify(self, path: str) -> None:
        for listener in self._listeners:
            listener(path)
