import importlib
import logging

import pytest

from mlwrap.core import make_learner
from mlwrap.utils.logger import configure_logging, logger, quiet_third_party, timeit

logger_module = importlib.import_module("mlwrap.utils.logger")


@pytest.fixture
def records():
    """Captura os registros emitidos durante o teste."""
    captured = []
    sink = logger.add(lambda msg: captured.append(msg.record), level="DEBUG")
    yield captured
    logger.remove(sink)


@pytest.mark.unit
class TestLogger:
    def test_configure_returns_handlers(self):
        try:
            ids = configure_logging(level="info", to_file=False, rich=False)
            assert len(ids) == 1
        finally:
            configure_logging()

    def test_learner_context_bound_in_train(self, iris_task, records):
        make_learner("classif.rpart").train(iris_task, seed=1)
        bound = {r["extra"].get("learner") for r in records}
        assert "classif.rpart" in bound

    def test_timeit_logs_and_returns(self, records):
        @timeit
        def soma(a, b):
            return a + b

        assert soma(2, 3) == 5
        assert any("soma" in r["message"] for r in records)

    def test_quiet_third_party(self):
        quiet_third_party("ERROR")
        assert logging.getLogger("optuna").level == logging.ERROR

    def test_host_sinks_survive_reconfigure(self):
        captured = []
        host = logger.add(lambda msg: captured.append(msg.record["message"]), level="INFO")
        try:
            configure_logging(to_file=False, rich=False)
            logger.info("mensagem do host")
            assert captured == ["mensagem do host"]
        finally:
            logger.remove(host)
            configure_logging()

    def test_import_installs_no_file_sink(self, tmp_path, monkeypatch):
        monkeypatch.setattr(logger_module, "LOG_DIR", tmp_path / "logs")
        try:
            configure_logging()
            logger.warning("sem arquivo")
            assert not (tmp_path / "logs").exists()
        finally:
            configure_logging()

    def test_file_sink_on_request(self, tmp_path, monkeypatch):
        monkeypatch.setattr(logger_module, "LOG_DIR", tmp_path)
        try:
            configure_logging(to_file=True, rich=False)
            logger.warning("para o arquivo")
        finally:
            configure_logging()
        assert list(tmp_path.glob("mlwrap_*.log"))
