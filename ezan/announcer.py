"""Adhan playback chain: the announcement, then optionally the dua."""

from dataclasses import dataclass
from datetime import datetime

from . import DUA, PRAYER_NAMES, audio_file
from .config import ConfigStore
from .errors import DecodeError, DeviceError
from .player import AudioPlayer


@dataclass(frozen=True)
class AnnouncementRequest:
    """A job firing for one announcement."""
    name: str
    fired_at: datetime


class AnnouncementChain:
    """Plays an announcement and, after a prayer adhan, the dua if enabled."""

    def __init__(self, store: ConfigStore, player: AudioPlayer):
        self._store = store
        self._player = player

    def announce(self, request: AnnouncementRequest) -> bool:
        print(f"[Ezan] Playing {request.name} adhan at {request.fired_at.strftime('%H:%M:%S')}")
        return self.play(request.name)

    def play(self, name: str) -> bool:
        """
        Play the sound for `name`, then the dua for the five prayers.

        Returns False when the main sound failed; the dua is then skipped.
        A failed dua is logged and does not change the result.
        """
        # One snapshot for the whole chain
        config = self._store.current

        try:
            self._player.play_once(audio_file(name), config.volume_for(name))
        except KeyError as e:
            print(f"[Ezan] {e.args[0]}")
            return False
        except (DecodeError, DeviceError) as e:
            print(f"[Ezan] Error playing {name}: {e}")
            return False

        if name in PRAYER_NAMES and config.dua_enabled:
            print(f"[Ezan] Playing dua after {name} adhan")
            try:
                self._player.play_once(audio_file(DUA), config.volume_for(DUA))
            except (DecodeError, DeviceError) as e:
                print(f"[Ezan] Error playing dua after {name}: {e}")

        return True
