"""
Модуль контекста черновиков (Drafting Context).

Отвечает за редактирование записей каталога (туры, отели, пакеты), включая:
- Хранение полей и вложенных массивов с проверкой
- Реестр изображений (локальные файлы и сохраненные URL)
- Автосохранение черновика между перезагрузками
- Загрузку изображений и отправку записи в API каталога
"""

from . import application, domain, infrastructure, interfaces

__all__ = [
    "application",
    "domain",
    "infrastructure",
    "interfaces",
]
