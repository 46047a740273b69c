"""Settings document and the process-wide configuration snapshot."""

import json
import os
import tempfile
import threading
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Callable, Mapping, Optional

from . import CONFIG_FILE
from .errors import InputError, InvalidCoordinates, StoreError
from .prayer_times import MADHABS, METHODS, validate_coordinates

DEFAULT_METHOD = "TURKEY"
DEFAULT_MADHAB = "SHAFI"
DEFAULT_VOLUME = 100


@dataclass(frozen=True)
class EzanConfig:
    """One complete, validated settings snapshot. Never mutated after parsing."""
    latitude: float
    longitude: float
    calculation_method: str = DEFAULT_METHOD
    madhab: str = DEFAULT_MADHAB
    dua_enabled: bool = False
    volume: Mapping[str, float] = field(default_factory=lambda: MappingProxyType({}))
    fajr_angle: Optional[float] = None
    isha_angle: Optional[float] = None

    @property
    def coordinates(self) -> tuple[float, float]:
        return (self.latitude, self.longitude)

    @property
    def angle_overrides(self) -> dict:
        return {"fajr_angle": self.fajr_angle, "isha_angle": self.isha_angle}

    def volume_for(self, name: str) -> float:
        """Volume percentage for an announcement, 100 when not configured."""
        return self.volume.get(name, DEFAULT_VOLUME)

    def to_dict(self) -> dict:
        return {
            "latitude": self.latitude,
            "longitude": self.longitude,
            "calculation_method": self.calculation_method,
            "madhab": self.madhab,
            "dua_enabled": self.dua_enabled,
            "fajr_angle": self.fajr_angle,
            "isha_angle": self.isha_angle,
            "volume": dict(self.volume),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "EzanConfig":
        """
        Validate a settings document.

        Raises InputError (or InvalidCoordinates) describing the first bad field.
        """
        if not isinstance(data, dict):
            raise InputError("Settings document must be an object")

        if "latitude" not in data or "longitude" not in data:
            raise InvalidCoordinates("Settings must contain latitude and longitude")
        latitude, longitude = validate_coordinates(data["latitude"], data["longitude"])

        method = data.get("calculation_method", DEFAULT_METHOD)
        if method not in METHODS:
            print(f"[Config] Unknown calculation method {method}, defaulting to {DEFAULT_METHOD}")
            method = DEFAULT_METHOD

        madhab = data.get("madhab", DEFAULT_MADHAB)
        if madhab not in MADHABS:
            print(f"[Config] Unknown madhab {madhab}, defaulting to {DEFAULT_MADHAB}")
            madhab = DEFAULT_MADHAB

        dua_enabled = data.get("dua_enabled", False)
        if not isinstance(dua_enabled, bool):
            raise InputError("dua_enabled must be true or false")

        angles = {}
        for key in ("fajr_angle", "isha_angle"):
            value = data.get(key)
            if value is not None and (isinstance(value, bool) or not isinstance(value, (int, float)) or not 0 <= value < 90):
                raise InputError(f"{key} must be a number in [0, 90)")
            angles[key] = None if value is None else float(value)

        volume = data.get("volume", {})
        if not isinstance(volume, dict):
            raise InputError("volume must be an object")
        for name, percent in volume.items():
            if isinstance(percent, bool) or not isinstance(percent, (int, float)) or not 0 <= percent <= 100:
                raise InputError(f"volume.{name} must be a number between 0 and 100")

        return cls(
            latitude=latitude,
            longitude=longitude,
            calculation_method=method,
            madhab=madhab,
            dua_enabled=dua_enabled,
            volume=MappingProxyType({name: float(percent) for name, percent in volume.items()}),
            **angles,
        )


def merge_settings(current: dict, updates: dict) -> dict:
    """Merge a partial update: `volume` is merged key by key, other keys overwrite."""
    merged = dict(current)
    for key, value in updates.items():
        if key == "volume":
            if not isinstance(value, dict):
                raise InputError("volume must be an object")
            volume = dict(merged.get("volume") or {})
            volume.update(value)
            merged["volume"] = volume
        else:
            merged[key] = value
    return merged


class ConfigStore:
    """
    Owner of the active EzanConfig.

    Readers take `store.current` once and keep that snapshot for the whole
    operation. Writers (reload, update) are serialized and replace the
    snapshot with a single assignment, so a reader never sees a half-applied
    change.
    """

    def __init__(self, path: Path = CONFIG_FILE):
        self.path = Path(path)
        self._current: Optional[EzanConfig] = None
        self._write_lock = threading.RLock()
        self._listeners: list[Callable[[EzanConfig], None]] = []
        self._last_mtime: float = 0

    @property
    def current(self) -> EzanConfig:
        config = self._current
        if config is None:
            raise StoreError("Settings have not been loaded")
        return config

    def on_reload(self, callback: Callable[[EzanConfig], None]):
        """Register a callback run after every successful reload."""
        self._listeners.append(callback)

    def read_document(self) -> dict:
        """Read the raw settings document."""
        try:
            with open(self.path, "r") as f:
                data = json.load(f)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise StoreError(f"Failed to parse config file {self.path}: {e}") from e
        except OSError as e:
            raise StoreError(f"Failed to read config file {self.path}: {e}") from e
        if not isinstance(data, dict):
            raise StoreError(f"Config file {self.path} does not contain an object")
        return data

    def write_document(self, data: dict):
        """Persist the full settings document, replacing the file in one step."""
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, suffix=".tmp")
            with os.fdopen(fd, "w") as f:
                json.dump(data, f, indent=2)
                f.write("\n")
            os.replace(tmp_path, self.path)
        except OSError as e:
            raise StoreError(f"Failed to write config file {self.path}: {e}") from e

    def load(self) -> EzanConfig:
        """Parse the settings file and swap it in. Does not notify listeners."""
        with self._write_lock:
            data = self.read_document()
            try:
                config = EzanConfig.from_dict(data)
            except InputError as e:
                raise StoreError(f"Invalid config file {self.path}: {e}") from e
            self._last_mtime = self._mtime()
            self._current = config
            return config

    def reload(self) -> EzanConfig:
        """
        Reload settings and notify listeners (the scheduler rebuild).

        On any StoreError the previous snapshot stays active and the error is
        raised to the caller.
        """
        with self._write_lock:
            config = self.load()
            print(
                f"[Config] Reloaded: ({config.latitude}, {config.longitude}) "
                f"{config.calculation_method}/{config.madhab}, dua {'on' if config.dua_enabled else 'off'}"
            )
            for callback in self._listeners:
                callback(config)
            return config

    def update(self, changes: dict) -> EzanConfig:
        """
        Apply a partial settings update, persist it and reload.

        Raises InputError if the merged document would be invalid (nothing is
        written) and StoreError if the file cannot be read, written or re-parsed.
        """
        if not isinstance(changes, dict):
            raise InputError("Settings update must be an object")
        with self._write_lock:
            merged = merge_settings(self.read_document(), changes)
            EzanConfig.from_dict(merged)
            self.write_document(merged)
            return self.reload()

    def reload_if_changed(self) -> bool:
        """Reload when the file was rewritten by someone else. Returns True on reload."""
        with self._write_lock:
            mtime = self._mtime()
            if not mtime or mtime <= self._last_mtime:
                return False
            print("[Config] Config file changed, reloading...")
            try:
                self.reload()
            except StoreError as e:
                # Remember the bad version so it is not retried every tick
                self._last_mtime = mtime
                print(f"[Config] Reload failed, keeping previous settings: {e}")
                return False
            return True

    def _mtime(self) -> float:
        try:
            return os.path.getmtime(self.path)
        except OSError:
            return 0
