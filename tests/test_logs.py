from loguru import logger

from vchat.logs import setup_logging


def test_logs_go_to_file(tmp_path):
    log_path = tmp_path / "nested" / "vchat.log"

    assert setup_logging("DEBUG", log_path) == log_path
    logger.debug("request sent")
    logger.remove()

    assert "request sent" in log_path.read_text()


def test_default_path_follows_xdg_state_home(tmp_path, monkeypatch):
    monkeypatch.setenv("XDG_STATE_HOME", str(tmp_path))

    log_path = setup_logging("INFO")
    logger.remove()

    assert log_path == tmp_path / "vchat" / "vchat.log"
