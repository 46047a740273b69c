"""Ezan module for scheduled prayer-time announcements."""

import os
from pathlib import Path

# Base paths
EZAN_DIR = Path(__file__).parent
PROJECT_DIR = EZAN_DIR.parent
AUDIO_DIR = Path(os.environ.get("EZAN_AUDIO_DIR", PROJECT_DIR / "audio"))
CONFIG_FILE = Path(os.environ.get("EZAN_CONFIG", PROJECT_DIR / "data" / "ezan_config.json"))

# Output device - None for the default, or a sounddevice device index
AUDIO_OUTPUT_DEVICE = os.environ.get("EZAN_AUDIO_DEVICE", None)
if AUDIO_OUTPUT_DEVICE is not None:
    AUDIO_OUTPUT_DEVICE = int(AUDIO_OUTPUT_DEVICE)

# Settings endpoint
API_HOST = os.environ.get("EZAN_API_HOST", "0.0.0.0")
API_PORT = int(os.environ.get("EZAN_API_PORT", "8080"))

# Announcement names
FAJR = "fajr"
DHUHR = "dhuhr"
ASR = "asr"
MAGHRIB = "maghrib"
ISHA = "isha"
PRAYER_NAMES = (FAJR, DHUHR, ASR, MAGHRIB, ISHA)

# Auxiliary cues: diagnostic test sound and the dua played after an adhan
TEST = "test"
DUA = "dua"

AUDIO_FILES = {
    FAJR: "ezan1.mp3",
    DHUHR: "ezan2.mp3",
    ASR: "ezan3.mp3",
    MAGHRIB: "ezan4.mp3",
    ISHA: "ezan5.mp3",
    TEST: "test.mp3",
    DUA: "dua.mp3",
}


def audio_file(name: str) -> Path:
    """Resolve the sound file for an announcement name."""
    if name not in AUDIO_FILES:
        raise KeyError(f"No audio file for announcement '{name}'")
    return AUDIO_DIR / AUDIO_FILES[name]
