"""
Модуль контекста расчета стоимости (Quotation Context).

Чистый расчет цены для группы путешественников: скидки, уровни
обслуживания, доплата за одноместное размещение и сборы за младенцев.
"""

from . import application, domain

__all__ = ["application", "domain"]
