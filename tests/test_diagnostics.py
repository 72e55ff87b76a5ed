import logging

import pytest

from edumixer.diagnostics import MeterLogger, configure_logging, format_meters
from edumixer.levels import zero_levels


def test_configure_logging_installs_single_handler(monkeypatch):
    monkeypatch.delenv("EDUMIXER_LOG_LEVEL", raising=False)
    configure_logging("debug")
    configure_logging("warning")

    root = logging.getLogger("edumixer")
    ours = [h for h in root.handlers if getattr(h, "_edumixer", False)]
    assert len(ours) == 1
    assert root.level == logging.WARNING


def test_environment_overrides_level(monkeypatch):
    monkeypatch.setenv("EDUMIXER_LOG_LEVEL", "ERROR")
    assert configure_logging("debug") == logging.ERROR


def test_unknown_level_is_rejected(monkeypatch):
    monkeypatch.delenv("EDUMIXER_LOG_LEVEL", raising=False)
    with pytest.raises(ValueError):
        configure_logging("chatty")


def test_meter_logger_reports_every_nth_snapshot(caplog):
    meters = MeterLogger(every=2, logger=logging.getLogger("test.meters"))
    with caplog.at_level(logging.INFO, logger="test.meters"):
        for _ in range(5):
            meters(zero_levels())

    assert meters.count == 5
    assert len(caplog.records) == 2
    assert caplog.records[0].getMessage() == format_meters(zero_levels())


def test_format_meters_shows_every_section():
    line = format_meters(zero_levels())
    assert line.startswith("CH [0.00 0.00 0.00 0.00] SUB")
    assert "MAIN L 0.00 R 0.00" in line
