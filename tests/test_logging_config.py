from credit_ingest.core import logging_config


def test_transport_loggers_are_quieted():
    config = logging_config.build_logging_config("DEBUG")

    assert config["root"]["level"] == "DEBUG"
    assert config["loggers"]["credit_ingest"] == {"level": "DEBUG"}
    assert config["loggers"]["urllib3"] == {"level": "WARNING"}
    assert "%(threadName)s" in config["formatters"]["ingest"]["format"]


def test_configure_logging_runs_once(monkeypatch):
    applied = []
    monkeypatch.setattr(logging_config, "_is_configured", False)
    monkeypatch.setattr(logging_config, "dictConfig", applied.append)

    logging_config.configure_logging("info")
    logging_config.configure_logging("debug")

    assert len(applied) == 1
    assert applied[0]["root"]["level"] == "INFO"


def test_level_defaults_to_settings(monkeypatch):
    applied = []
    monkeypatch.setattr(logging_config, "_is_configured", False)
    monkeypatch.setattr(logging_config, "dictConfig", applied.append)
    monkeypatch.setattr(logging_config.settings, "log_level", "warning")

    logging_config.configure_logging()

    assert applied[0]["root"]["level"] == "WARNING"
