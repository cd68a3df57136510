"""
Тесты настроек и логирования общего ядра.
"""

import logging

from shared_kernel import Settings, StdLogger, configure_logging


class TestSettings:
    """Тесты загрузки настроек."""

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("TRAVEL_DRAFT_MAX_AGE_HOURS", raising=False)
        monkeypatch.delenv("TRAVEL_DEFAULT_CURRENCY", raising=False)

        settings = Settings(_env_file=None)

        assert settings.draft_key_prefix == "draft"
        assert settings.draft_max_age_hours == 72
        assert settings.default_currency == "EGP"
        assert settings.local_preview_schemes == ["blob:"]

    def test_environment_override(self, monkeypatch):
        monkeypatch.setenv("TRAVEL_DRAFT_MAX_AGE_HOURS", "24")
        monkeypatch.setenv("TRAVEL_DEFAULT_CURRENCY", "USD")
        monkeypatch.setenv("TRAVEL_LOCAL_PREVIEW_SCHEMES", '["blob:", "data:"]')

        settings = Settings(_env_file=None)

        assert settings.draft_max_age_hours == 24
        assert settings.default_currency == "USD"
        assert settings.local_preview_schemes == ["blob:", "data:"]


class TestLogging:
    """Тесты адаптера логирования."""

    def test_context_is_appended(self, caplog):
        logger = StdLogger("travel.tests")

        with caplog.at_level(logging.INFO, logger="travel.tests"):
            logger.info("Запись сохранена", entity_id=7)

        assert "Запись сохранена" in caplog.text
        assert '"entity_id": 7' in caplog.text

    def test_configure_logging_sets_level(self):
        configure_logging("DEBUG")

        assert logging.getLogger("travel").level == logging.DEBUG

        configure_logging("INFO")
