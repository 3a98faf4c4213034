import logging

from darknote_core.logger import get_logger


def test_level_from_env(monkeypatch):
    monkeypatch.setenv("DARKNOTE_LOG_LEVEL", "debug")
    assert get_logger("darknote.test.env").level == logging.DEBUG


def test_unknown_level_falls_back_to_info(monkeypatch):
    monkeypatch.setenv("DARKNOTE_LOG_LEVEL", "verbose")
    log = get_logger("darknote.test.bad_level")
    assert log.level == logging.INFO


def test_single_handler(tmp_path):
    path = str(tmp_path / "logs" / "darknote.log")
    log = get_logger("darknote.test.file", to_file=path)
    again = get_logger("darknote.test.file", to_file=path)
    assert again is log
    assert len(log.handlers) == 2
    log.info("[TEST] hello")
    for h in log.handlers:
        h.flush()
    assert '"msg": "[TEST] hello"' in (tmp_path / "logs" / "darknote.log").read_text()
