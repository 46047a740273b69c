"""Blocking sound playback using soundfile and sounddevice."""

import threading
from pathlib import Path
from typing import Callable, Optional

import numpy as np
import soundfile as sf

from . import AUDIO_OUTPUT_DEVICE
from .errors import DecodeError, DeviceError

# Gain at 0% volume, in dB. 100% is unity gain (0 dB).
MIN_GAIN_DB = -60.0

# Frames decoded and written per block
BLOCK_SIZE = 4096

# One output device per process: only one sound may play at a time
_output_lock = threading.Lock()


def volume_to_gain(percent: float) -> float:
    """
    Map a 0-100 volume percentage onto an amplitude multiplier.

    The percentage is spread linearly in decibels between MIN_GAIN_DB and
    0 dB, which follows perceived loudness instead of raw amplitude.
    """
    percent = max(0.0, min(100.0, float(percent)))
    gain_db = MIN_GAIN_DB * (1 - percent / 100)
    return 10 ** (gain_db / 20)


class OutputDevice:
    """Sounddevice output stream that reports PortAudio failures as DeviceError."""

    def __init__(self, samplerate: int, channels: int, device: Optional[int] = AUDIO_OUTPUT_DEVICE):
        try:
            import sounddevice as sd
        except OSError as e:
            # PortAudio shared library missing
            raise DeviceError(f"Audio output unavailable: {e}") from e

        self._port_audio_error = sd.PortAudioError
        try:
            self._stream = sd.OutputStream(
                samplerate=samplerate,
                channels=channels,
                dtype="float32",
                device=device,
            )
        except (sd.PortAudioError, ValueError) as e:
            raise DeviceError(f"Cannot open output device at {samplerate} Hz: {e}") from e

    def __enter__(self):
        try:
            self._stream.start()
        except self._port_audio_error as e:
            self._stream.close()
            raise DeviceError(f"Cannot start output stream: {e}") from e
        return self

    def write(self, block: np.ndarray):
        try:
            self._stream.write(block)
        except self._port_audio_error as e:
            raise DeviceError(f"Output stream write failed: {e}") from e

    def __exit__(self, exc_type, exc, tb):
        # stop() returns once all queued buffers have been played
        try:
            self._stream.stop()
        except self._port_audio_error as e:
            if exc is None:
                raise DeviceError(f"Output stream stop failed: {e}") from e
        finally:
            self._stream.close()
        return False


def _open_sound(path: str) -> sf.SoundFile:
    return sf.SoundFile(path)


class AudioPlayer:
    """
    Plays one sound file to completion.

    `open_sound` and `open_output` are factories for the decoder and the
    output device; tests replace them with in-memory fakes.
    """

    def __init__(
        self,
        open_sound: Callable[[str], sf.SoundFile] = _open_sound,
        open_output: Callable[[int, int], OutputDevice] = OutputDevice,
    ):
        self._open_sound = open_sound
        self._open_output = open_output

    def play_once(self, path: Path, volume: float = 100) -> int:
        """
        Play `path` at `volume` percent, blocking until the last frame is rendered.

        Returns the number of frames played. Raises DecodeError if the file
        cannot be opened or decoded and DeviceError if the output device
        fails. Decoder and device are closed on every exit path.
        """
        gain = np.float32(volume_to_gain(volume))

        with _output_lock:
            try:
                sound = self._open_sound(str(path))
            except (RuntimeError, OSError) as e:
                raise DecodeError(f"Cannot open {path}: {e}") from e

            frames = 0
            with sound:
                with self._open_output(sound.samplerate, sound.channels) as output:
                    blocks = sound.blocks(blocksize=BLOCK_SIZE, dtype="float32", always_2d=True)
                    while True:
                        try:
                            block = next(blocks)
                        except StopIteration:
                            break
                        except RuntimeError as e:
                            raise DecodeError(f"Cannot decode {path}: {e}") from e
                        output.write(block * gain)
                        frames += len(block)

        print(f"[Player] Played {Path(path).name} ({frames} frames, volume {volume:g}%)")
        return frames
