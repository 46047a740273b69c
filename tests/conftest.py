# tests/conftest.py

import json
from datetime import date, datetime, timedelta, timezone
from types import MappingProxyType

import numpy as np
import pytest

from ezan import PRAYER_NAMES
from ezan.config import ConfigStore
from ezan.prayer_times import PrayerSchedule
from ezan.scheduler import create_scheduler

BERLIN_SETTINGS = {
    "latitude": 52.52,
    "longitude": 13.405,
    "calculation_method": "TURKEY",
    "madhab": "SHAFI",
    "dua_enabled": True,
    "volume": {
        "fajr": 40,
        "dhuhr": 80,
        "asr": 80,
        "maghrib": 80,
        "isha": 60,
        "dua": 70,
    },
}


@pytest.fixture
def config_file(tmp_path):
    """A valid settings document on disk."""
    path = tmp_path / "ezan_config.json"
    path.write_text(json.dumps(BERLIN_SETTINGS))
    return path


@pytest.fixture
def store(config_file):
    """A ConfigStore with the Berlin settings loaded."""
    store = ConfigStore(config_file)
    store.load()
    return store


@pytest.fixture
def scheduler():
    """A scheduler that is never started; jobs stay in its pending list."""
    return create_scheduler()


def make_schedule(day: date, start: datetime, step_minutes: int = 60) -> PrayerSchedule:
    """Five times `step_minutes` apart, starting at `start`."""
    times = {
        name: start + timedelta(minutes=step_minutes * index)
        for index, name in enumerate(PRAYER_NAMES)
    }
    return PrayerSchedule(date=day, times=MappingProxyType(times))


class FakeCompute:
    """Stands in for compute_prayer_times, returning queued results in order."""

    def __init__(self, *results):
        self.results = list(results)
        self.calls = []

    def __call__(self, coordinates, day, method, madhab, angle_overrides=None):
        self.calls.append((coordinates, day, method, madhab))
        result = self.results.pop(0) if len(self.results) > 1 else self.results[0]
        if isinstance(result, Exception):
            raise result
        return result


class FakeSound:
    """In-memory decoded sound: `frames` frames of constant `amplitude`."""

    def __init__(self, path, frames=10000, amplitude=0.5, samplerate=44100, channels=2, fail_after=None):
        self.path = path
        self.frames = frames
        self.amplitude = amplitude
        self.samplerate = samplerate
        self.channels = channels
        self.fail_after = fail_after
        self.closed = False

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.closed = True
        return False

    def blocks(self, blocksize, dtype="float32", always_2d=True):
        emitted = 0
        while emitted < self.frames:
            if self.fail_after is not None and emitted >= self.fail_after:
                raise RuntimeError("Error decoding frame")
            count = min(blocksize, self.frames - emitted)
            emitted += count
            yield np.full((count, self.channels), self.amplitude, dtype=dtype)


class FakeOutput:
    """Records every written block into a shared timeline."""

    def __init__(self, timeline, label, samplerate, channels):
        self.timeline = timeline
        self.label = label
        self.samplerate = samplerate
        self.channels = channels
        self.entered = False
        self.exited = False

    def __enter__(self):
        self.entered = True
        return self

    def write(self, block):
        self.timeline.append((self.label, block.copy()))

    def __exit__(self, *exc):
        self.exited = True
        return False


class FakeAudio:
    """Factories for AudioPlayer that produce FakeSound/FakeOutput pairs."""

    def __init__(self, **sound_kwargs):
        self.sound_kwargs = sound_kwargs
        self.sounds = []
        self.outputs = []
        self.timeline = []

    def open_sound(self, path):
        sound = FakeSound(path, **self.sound_kwargs)
        self.sounds.append(sound)
        return sound

    def open_output(self, samplerate, channels):
        label = self.sounds[-1].path if self.sounds else None
        output = FakeOutput(self.timeline, label, samplerate, channels)
        self.outputs.append(output)
        return output


@pytest.fixture
def fake_audio():
    return FakeAudio()


class FakePlayer:
    """Records play_once calls; raises the configured error for given file names."""

    def __init__(self, failures=None):
        self.failures = failures or {}
        self.calls = []

    def play_once(self, path, volume=100):
        self.calls.append((path.name, volume))
        error = self.failures.get(path.name)
        if error is not None:
            raise error
        return 1


@pytest.fixture
def fake_player():
    return FakePlayer()


@pytest.fixture
def fixed_day():
    return date(2024, 3, 20)


@pytest.fixture
def fixed_now(fixed_day):
    """Just after midnight UTC on fixed_day."""
    return datetime(fixed_day.year, fixed_day.month, fixed_day.day, 0, 0, 5, tzinfo=timezone.utc)


@pytest.fixture
def utc_start():
    """04:00 UTC tomorrow, so fake schedules stay in the future on forced rebuilds."""
    tomorrow = datetime.now(timezone.utc).date() + timedelta(days=1)
    return datetime(tomorrow.year, tomorrow.month, tomorrow.day, 4, 0, tzinfo=timezone.utc)
