"""Microphone capture and audio file writing."""

import logging
import queue
import threading
from pathlib import Path

import numpy as np
import sounddevice as sd
import soundfile as sf

from keyboard_assist.config import CHUNK_MS, INPUT_CHANNELS, SAMPLE_RATE
from keyboard_assist.errors import RecordingError

logger = logging.getLogger(__name__)


def resolve_input_device(device: str | int | None) -> int | None:
    """
    Map an input device index or name fragment to a sounddevice index.

    Args:
        device: Device index, case-insensitive name substring, or None for default

    Returns:
        Device index, or None for the system default

    Raises:
        RecordingError: If no input device matches
    """
    if device is None or device == "":
        return None
    if isinstance(device, int):
        return device
    if device.isdigit():
        return int(device)

    needle = device.lower()
    for index, info in enumerate(sd.query_devices()):
        if info.get("max_input_channels", 0) > 0 and needle in info["name"].lower():
            return index
    raise RecordingError(f"No input device matches {device!r}")


def write_audio_file(path: Path, audio: np.ndarray, sample_rate: int = SAMPLE_RATE) -> Path:
    """Write float32 mono samples to ``path`` as 16-bit PCM WAV."""
    try:
        sf.write(str(path), audio, sample_rate, subtype="PCM_16", format="WAV")
    except (RuntimeError, OSError) as e:
        # soundfile raises LibsndfileError, a RuntimeError subclass
        raise RecordingError(f"Could not write audio file {path}: {e}") from e
    logger.debug("Wrote %.2fs of audio to %s", len(audio) / sample_rate, path)
    return path


class AudioRecorder:
    """Records microphone input into an in-memory buffer."""

    def __init__(
        self,
        sample_rate: int = SAMPLE_RATE,
        channels: int = INPUT_CHANNELS,
        chunk_ms: float = CHUNK_MS,
    ):
        self.sample_rate = sample_rate
        self.channels = channels
        self.chunk_ms = chunk_ms

        self._recording = False
        self._audio_queue: queue.Queue[np.ndarray] = queue.Queue()
        self._audio_buffer: list[np.ndarray] = []
        self._buffer_lock = threading.Lock()
        self._stream: sd.InputStream | None = None
        self._collector: threading.Thread | None = None
        self._stop_collector = threading.Event()

    def _audio_callback(self, indata: np.ndarray, frames: int, time_info, status) -> None:
        if status:
            logger.debug("Audio status: %s", status)
        # Downmix to mono
        data = indata if indata.ndim == 1 else np.mean(indata, axis=1)
        self._audio_queue.put_nowait(data.copy())

    def _collect(self) -> None:
        while not self._stop_collector.is_set():
            try:
                chunk = self._audio_queue.get(timeout=0.1)
            except queue.Empty:
                continue
            with self._buffer_lock:
                self._audio_buffer.append(chunk)

    def _drain_queue(self) -> None:
        with self._buffer_lock:
            while True:
                try:
                    self._audio_buffer.append(self._audio_queue.get_nowait())
                except queue.Empty:
                    break

    def start(self, device: int | None = None) -> None:
        """
        Open the input stream and begin buffering audio.

        Args:
            device: sounddevice input index (None for default)

        Raises:
            RecordingError: If the input stream cannot be opened
        """
        if self._stream is not None:
            logger.warning("Recorder already running; restarting input stream")
            self.stop()

        with self._buffer_lock:
            self._audio_buffer = []

        if self._collector is None or not self._collector.is_alive():
            self._stop_collector.clear()
            self._collector = threading.Thread(target=self._collect, daemon=True)
            self._collector.start()

        try:
            self._stream = sd.InputStream(
                channels=self.channels,
                samplerate=self.sample_rate,
                dtype="float32",
                callback=self._audio_callback,
                blocksize=int(self.sample_rate * (self.chunk_ms / 1000.0)),
                device=device,
            )
            self._stream.start()
        except (sd.PortAudioError, ValueError) as e:
            self._stream = None
            raise RecordingError(f"Could not start input device: {e}") from e
        self._recording = True

    def stop(self) -> None:
        """Stop and release the input stream. Safe to call when idle."""
        stream, self._stream = self._stream, None
        self._recording = False
        if stream is None:
            return
        try:
            stream.stop()
            stream.close()
        except (sd.PortAudioError, RuntimeError) as e:
            # Stream already closed or the device went away
            logger.debug("Ignoring error while closing input stream: %s", e)
        # Collector must be idle before the final drain
        self._join_collector()
        self._drain_queue()

    def _join_collector(self) -> None:
        self._stop_collector.set()
        if self._collector and self._collector.is_alive():
            self._collector.join(timeout=1.0)
            if self._collector.is_alive():
                logger.warning("Audio collector thread did not stop")

    def get_buffer(self) -> np.ndarray | None:
        """Return and clear the captured audio, or None if nothing was captured."""
        with self._buffer_lock:
            if not self._audio_buffer:
                return None
            audio = np.concatenate(self._audio_buffer).astype(np.float32)
            self._audio_buffer.clear()
            return audio

    @property
    def is_recording(self) -> bool:
        return self._recording

    def shutdown(self) -> None:
        """Stop recording and join the collector thread."""
        self.stop()
        self._join_collector()
