import logging

from rich.logging import RichHandler

from kproc import logging_config


def test_set_debug_toggles_namespace():
    logger = logging.getLogger("kproc")
    try:
        logging_config.set_debug(True)
        assert logging_config.is_debug_enabled()
        assert logger.level == logging.DEBUG
        assert logging.getLogger("kproc.kill").isEnabledFor(logging.DEBUG)
    finally:
        logging_config.set_debug(False)
    assert not logging_config.is_debug_enabled()
    assert logger.level == logging.NOTSET


def test_setup_logging_installs_rich_and_file(tmp_path, monkeypatch):
    log_file = tmp_path / "kproc.log"
    monkeypatch.setenv("KPROC_LOG_FILE", str(log_file))
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    try:
        logging_config.setup_logging(logging.INFO)
        assert any(isinstance(h, RichHandler) for h in root.handlers)
        logging.getLogger("kproc.test").info("hello file")
        for handler in root.handlers:
            handler.flush()
        assert "hello file" in log_file.read_text()
    finally:
        for handler in root.handlers:
            handler.close()
        root.handlers[:] = handlers
        root.setLevel(level)
