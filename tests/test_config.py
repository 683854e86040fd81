"""
callsum Settings and Logging Tests
"""

import logging

import pytest

from callsum.config import Settings
from callsum.log import PACKAGE_LOGGER, configure_logging


class TestSettings:

    def test_defaults(self):
        settings = Settings()
        assert settings.level_bins == 20
        assert settings.tick_seconds == 1.0
        assert settings.sample_interval == pytest.approx(1 / 30)

    def test_rejects_non_positive_bins(self):
        with pytest.raises(ValueError, match="level_bins"):
            Settings(level_bins=0)

    def test_rejects_non_positive_interval(self):
        with pytest.raises(ValueError):
            Settings(tick_seconds=0)

    def test_dict_round_trip(self):
        settings = Settings(level_bins=8, sample_rate=44100)
        assert Settings.from_dict(settings.to_dict()) == settings

    def test_unknown_keys_rejected(self):
        with pytest.raises(ValueError, match="Unknown settings"):
            Settings.from_dict({"level_bins": 8, "bogus": 1})

    def test_from_env_coerces_types(self):
        environ = {"CALLSUM_LEVEL_BINS": "32", "CALLSUM_TICK_SECONDS": "0.5", "OTHER": "x"}
        settings = Settings.from_env(environ=environ)
        assert settings.level_bins == 32
        assert settings.tick_seconds == 0.5
        assert settings.sample_rate == 16000

    def test_from_env_custom_prefix(self):
        settings = Settings.from_env(prefix="APP_", environ={"APP_CHANNELS": "2"})
        assert settings.channels == 2


@pytest.fixture
def package_logger():
    logger = logging.getLogger(PACKAGE_LOGGER)
    saved_level, saved_handlers = logger.level, list(logger.handlers)
    yield logger
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    for handler in saved_handlers:
        logger.addHandler(handler)
    logger.setLevel(saved_level)


class TestConfigureLogging:

    def test_writes_formatted_lines_to_file(self, package_logger, tmp_path):
        log_file = tmp_path / "callsum.log"
        configure_logging(logging.DEBUG, log_file=log_file)

        logging.getLogger("callsum.pipeline").info("Run started")
        for handler in package_logger.handlers:
            handler.flush()

        line = log_file.read_text().strip()
        assert line.startswith("[")
        assert line.endswith("INFO - callsum.pipeline - Run started")

    def test_repeated_calls_do_not_duplicate_handlers(self, package_logger, tmp_path):
        configure_logging(log_file=tmp_path / "a.log")
        configure_logging(log_file=tmp_path / "b.log")
        assert len(package_logger.handlers) == 1

    def test_level_applied(self, package_logger):
        configure_logging("WARNING")
        assert package_logger.level == logging.WARNING
