# motor_relay/config/settings.py
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml  # pip install pyyaml

from motor_relay.core.state import DeviceState, Direction


CONFIG_ENV = "MOTOR_RELAY_CONFIG"
ENV_PREFIX = "MOTOR_RELAY_"

_TRUTHY = {"1", "true", "yes", "y", "on"}
_FALSY = {"0", "false", "no", "n", "off"}


def _coerce(raw: Any, default: Any, key: str) -> Any:
    """
    Konwersja wartości z env/YAML do typu wartości domyślnej.
    Zła wartość = ValueError z nazwą pola (lepiej paść przy starcie niż potem).
    """
    if isinstance(default, bool):
        if isinstance(raw, bool):
            return raw
        if isinstance(raw, (int, float)):
            return bool(raw)
        s = str(raw).strip().lower()
        if s in _TRUTHY:
            return True
        if s in _FALSY:
            return False
        raise ValueError(f"Setting '{key}' expects a bool, got: {raw!r}")

    if isinstance(default, int):
        try:
            return int(raw)
        except (TypeError, ValueError):
            raise ValueError(f"Setting '{key}' expects an int, got: {raw!r}")

    if isinstance(default, float):
        try:
            return float(raw)
        except (TypeError, ValueError):
            raise ValueError(f"Setting '{key}' expects a number, got: {raw!r}")

    return "" if raw is None else str(raw)


def load_yaml_config(path: Optional[Path] = None) -> Dict[str, Any]:
    """
    Czyta plik YAML wskazany przez MOTOR_RELAY_CONFIG (albo path).
    Brak zmiennej = pusty słownik; wskazany, ale nieistniejący plik = błąd.
    """
    if path is None:
        raw_path = os.getenv(CONFIG_ENV)
        if not raw_path:
            return {}
        path = Path(raw_path)

    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with path.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    if not isinstance(data, dict):
        raise ValueError(f"Config file {path} must contain a mapping, got {type(data).__name__}")
    return data


def _build(cls, section: Mapping[str, Any], env_prefix: str):
    """
    Kolejność: default < YAML (sekcja) < env (<PREFIX><POLE> wielkimi literami).
    """
    kwargs: Dict[str, Any] = {}
    default_obj = cls()
    for f in fields(cls):
        default = getattr(default_obj, f.name)
        value = default
        if f.name in section:
            value = _coerce(section[f.name], default, f.name)
        env_name = env_prefix + f.name.upper()
        env_raw = os.getenv(env_name)
        if env_raw is not None:
            value = _coerce(env_raw, default, env_name)
        kwargs[f.name] = value
    return cls(**kwargs)


@dataclass
class DeviceSettings:
    """
    Ustawienia procesu na Pi.

    relay_url  – pusty string = bez uplinku (tylko lokalne sterowanie)
    use_serial – False = MockActuator zamiast portu szeregowego
    """
    device_id: str = "pi-motor-1"
    relay_url: str = "ws://127.0.0.1:4000/ws"
    reconnect_delay_s: float = 5.0

    use_serial: bool = False
    serial_port: str = "/dev/ttyACM0"
    baud_rate: int = 115200

    http_host: str = "0.0.0.0"
    http_port: int = 3000

    pulse_interval_min_us: int = 200
    pulse_interval_max_us: int = 4000

    initial_enabled: bool = True
    initial_direction: int = 1
    initial_pulse_interval_us: int = 800

    event_buffer_size: int = 500
    log_level: str = "INFO"

    def initial_state(self) -> DeviceState:
        return DeviceState(
            enabled=self.initial_enabled,
            direction=Direction.FORWARD if self.initial_direction else Direction.REVERSE,
            pulse_interval_us=self.initial_pulse_interval_us,
            active=False,
        )


@dataclass
class RelaySettings:
    host: str = "127.0.0.1"
    port: int = 4000
    path: str = "/ws"
    log_level: str = "INFO"


def load_device_settings(config: Optional[Mapping[str, Any]] = None) -> DeviceSettings:
    data = load_yaml_config() if config is None else dict(config)
    return _build(DeviceSettings, data.get("device") or {}, ENV_PREFIX + "DEVICE_")


def load_relay_settings(config: Optional[Mapping[str, Any]] = None) -> RelaySettings:
    data = load_yaml_config() if config is None else dict(config)
    return _build(RelaySettings, data.get("relay") or {}, ENV_PREFIX + "RELAY_")


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
