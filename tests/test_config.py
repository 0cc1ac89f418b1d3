import logging

from motor_monitor.config import MonitorConfig, configure_logging, load_config
from motor_monitor.services.acquisition_service import parse_args


def test_defaults_without_environment(monkeypatch):
    for key in ("PORT", "PERIOD", "TORQUE", "BUFFER_CAPACITY", "RENDER_CHARTS"):
        monkeypatch.delenv(f"MOTOR_MONITOR_{key}", raising=False)
    cfg = load_config()

    assert cfg.port == "/dev/ttyUSB0"
    assert cfg.baudrate == 9600
    assert cfg.period == 1.0
    assert cfg.torque is None
    assert cfg.buffer_capacity is None
    assert cfg.render_charts is True


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("MOTOR_MONITOR_PORT", "/dev/ttyS2")
    monkeypatch.setenv("MOTOR_MONITOR_PERIOD", "0.5")
    monkeypatch.setenv("MOTOR_MONITOR_TORQUE", "12.5")
    monkeypatch.setenv("MOTOR_MONITOR_BUFFER_CAPACITY", "3600")
    monkeypatch.setenv("MOTOR_MONITOR_RENDER_CHARTS", "no")
    monkeypatch.setenv("MOTOR_MONITOR_LOG_LEVEL", "debug")
    cfg = load_config()

    assert cfg.port == "/dev/ttyS2"
    assert cfg.period == 0.5
    assert cfg.torque == 12.5
    assert cfg.buffer_capacity == 3600
    assert cfg.render_charts is False
    assert cfg.log_level == "DEBUG"


def test_malformed_values_fall_back(monkeypatch):
    monkeypatch.setenv("MOTOR_MONITOR_BAUDRATE", "fast")
    monkeypatch.setenv("MOTOR_MONITOR_PERIOD", "")
    monkeypatch.setenv("MOTOR_MONITOR_BUFFER_CAPACITY", "0")
    cfg = load_config()

    assert cfg.baudrate == 9600
    assert cfg.period == 1.0
    assert cfg.buffer_capacity is None


def test_command_line_overrides_config():
    cfg = parse_args(
        ["--port", "COM3", "--period", "2", "--no-charts", "--buffer-capacity", "10"],
        MonitorConfig(),
    )
    assert cfg.port == "COM3"
    assert cfg.period == 2.0
    assert cfg.render_charts is False
    assert cfg.buffer_capacity == 10
    assert cfg.baudrate == 9600


def test_configure_logging_sets_level():
    configure_logging("debug")
    assert logging.getLogger("motor_monitor").level == logging.DEBUG
    configure_logging("INFO")
