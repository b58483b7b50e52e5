import pytest
from pydantic import ValidationError

from mlwrap.config import Settings, settings


@pytest.mark.unit
class TestSettings:
    def test_defaults(self):
        s = Settings(_env_file=None)
        assert s.EXECUTOR == "sequential"
        assert s.N_JOBS == 1
        assert s.ON_TRIAL_ERROR == "impute"
        assert s.TRIAL_TIMEOUT is None
        assert s.BAGGING_ITERS == 10
        assert s.CV_FOLDS == 3

    def test_file_logging_off_by_default(self, monkeypatch):
        monkeypatch.delenv("LOG_TO_FILE", raising=False)
        s = Settings(_env_file=None)
        assert s.LOG_TO_FILE is False
        assert not hasattr(s, "OUTPUTS_DIR")

    def test_log_level_is_uppercased(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "debug")
        assert Settings(_env_file=None).LOG_LEVEL == "DEBUG"

    def test_singleton(self):
        assert isinstance(settings, Settings)
        assert settings.LOGS_DIR.parent == settings.ROOT_DIR

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("EXECUTOR", "thread")
        monkeypatch.setenv("N_JOBS", "4")
        monkeypatch.setenv("TRIAL_TIMEOUT", "2.5")
        s = Settings(_env_file=None)
        assert s.EXECUTOR == "thread"
        assert s.N_JOBS == 4
        assert s.TRIAL_TIMEOUT == 2.5

    @pytest.mark.parametrize(
        "name,value",
        [
            ("N_JOBS", "0"),
            ("BAGGING_ITERS", "0"),
            ("CV_FOLDS", "1"),
            ("TRIAL_TIMEOUT", "-1"),
            ("EXECUTOR", "gpu"),
            ("ON_TRIAL_ERROR", "ignore"),
        ],
    )
    def test_invalid_values(self, monkeypatch, name, value):
        monkeypatch.setenv(name, value)
        with pytest.raises(ValidationError):
            Settings(_env_file=None)
