"""Speech recording and transcription through the OpenAI audio API."""

from __future__ import annotations

import logging
import mimetypes
import os
import tempfile
import time
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path
from typing import Callable

import numpy as np

from keyboard_assist.audio import AudioRecorder, write_audio_file
from keyboard_assist.config import AUDIO_FILE_SUFFIX, TranscriptionConfig
from keyboard_assist.errors import (
    HttpRequestError,
    KeyboardAssistError,
    RecordingError,
    TranscriptionError,
)
from keyboard_assist.http_client import HttpRequestExecutor
from keyboard_assist.results import TranscriptionResult, TranscriptionSession

logger = logging.getLogger("keyboard_assist")

Dispatcher = Callable[[Callable[[], None]], None]
ResultCallback = Callable[[str], None]
ErrorCallback = Callable[[str], None]

ERROR_PREFIX = "Transcription failed: "


def run_inline(fn: Callable[[], None]) -> None:
    fn()


def build_transcription_form(config: TranscriptionConfig) -> dict[str, str]:
    """Form fields sent next to the audio file."""
    data = {"model": config.model, "response_format": "text"}
    if config.language:
        data["language"] = config.language
    if config.prompt:
        data["prompt"] = config.prompt
    return data


def audio_mime_type(path: Path) -> str:
    mime, _ = mimetypes.guess_type(path.name)
    return mime or "application/octet-stream"


class AudioTranscriptionClient:
    """Records from the microphone and transcribes the recording.

    The client moves through ``idle -> recording -> transcribing -> idle``.
    ``is_recording`` and ``is_transcribing`` are written only by the client and
    may be polled by a UI. Results are handed to ``dispatcher`` so a UI can
    run them on its own thread, e.g. ``lambda fn: root.after(0, fn)``.
    """

    def __init__(
        self,
        config: TranscriptionConfig,
        executor: HttpRequestExecutor | None = None,
        recorder: AudioRecorder | None = None,
        dispatcher: Dispatcher | None = None,
        audio_dir: Path | None = None,
    ):
        self.config = config
        self._http = executor or HttpRequestExecutor(
            timeout=config.timeout, debug_logging=config.debug_logging
        )
        self._recorder = recorder or AudioRecorder(sample_rate=config.sample_rate)
        self._dispatcher = dispatcher or run_inline
        self._audio_dir = audio_dir
        self._worker = ThreadPoolExecutor(max_workers=1, thread_name_prefix="transcription")

        self._session: TranscriptionSession | None = None
        self._is_recording = False
        self._is_transcribing = False

    @property
    def is_recording(self) -> bool:
        return self._is_recording

    @property
    def is_transcribing(self) -> bool:
        return self._is_transcribing

    @property
    def session(self) -> TranscriptionSession | None:
        return self._session

    def _new_audio_path(self) -> Path:
        handle, name = tempfile.mkstemp(
            prefix="recording-", suffix=AUDIO_FILE_SUFFIX, dir=self._audio_dir
        )
        # soundfile reopens the path itself
        os.close(handle)
        return Path(name)

    def _discard_audio(self, path: Path) -> None:
        if self.config.keep_audio:
            logger.debug("Keeping audio file %s", path)
            return
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            logger.warning("Could not delete audio file %s: %s", path, e)

    def start_recording(self, device: int | None = None) -> None:
        """
        Start capturing microphone audio for a new session.

        Starting again while recording drops the running session.

        Args:
            device: sounddevice input index (None for default)

        Raises:
            RecordingError: If the microphone cannot be opened
        """
        previous = self._session
        if previous is not None and previous.is_recording:
            logger.warning("start_recording called while recording; discarding previous session")
            self._recorder.stop()
            self._recorder.get_buffer()
            self._discard_audio(previous.audio_file_path)

        try:
            path = self._new_audio_path()
        except OSError as e:
            raise RecordingError(f"Could not create audio file: {e}") from e

        try:
            self._recorder.start(device)
        except RecordingError:
            self._discard_audio(path)
            self._session = None
            self._is_recording = False
            raise

        self._session = TranscriptionSession(audio_file_path=path, is_recording=True)
        self._is_recording = True
        logger.info("Recording started: %s", path)

    def stop_recording(
        self,
        on_result: ResultCallback | None = None,
        on_error: ErrorCallback | None = None,
    ) -> Future[TranscriptionResult]:
        """
        Stop recording and transcribe the captured audio in the background.

        Exactly one of ``on_result`` / ``on_error`` is called, through the
        dispatcher, after ``is_transcribing`` has been cleared. The returned
        future resolves to the same outcome once the callback has run.
        """
        session = self._session
        self._recorder.stop()
        self._is_recording = False
        outcome: Future[TranscriptionResult] = Future()

        if session is None or not session.is_recording:
            result = TranscriptionResult.failure(ERROR_PREFIX + "not recording")
            self._dispatcher(lambda: self._deliver(result, None, outcome, on_result, on_error))
            return outcome

        session.is_recording = False
        audio = self._recorder.get_buffer()

        session.is_transcribing = True
        self._is_transcribing = True

        def finish(task: Future[TranscriptionResult]) -> None:
            if task.cancelled():
                self._discard_audio(session.audio_file_path)
                result = TranscriptionResult.failure(ERROR_PREFIX + "cancelled")
            elif task.exception() is not None:
                result = TranscriptionResult.failure(ERROR_PREFIX + str(task.exception()))
            else:
                result = task.result()
            self._dispatcher(lambda: self._deliver(result, session, outcome, on_result, on_error))

        try:
            task = self._worker.submit(self._transcribe_session, session, audio)
        except RuntimeError as e:
            # Worker already shut down
            self._discard_audio(session.audio_file_path)
            result = TranscriptionResult.failure(ERROR_PREFIX + str(e))
            self._dispatcher(lambda: self._deliver(result, session, outcome, on_result, on_error))
            return outcome
        task.add_done_callback(finish)
        return outcome

    def _deliver(
        self,
        result: TranscriptionResult,
        session: TranscriptionSession | None,
        outcome: Future[TranscriptionResult],
        on_result: ResultCallback | None,
        on_error: ErrorCallback | None,
    ) -> None:
        if session is not None:
            session.is_transcribing = False
            if self._session is session:
                self._session = None
            self._is_transcribing = False
        try:
            if result.ok:
                if on_result is not None:
                    on_result(result.text)
            else:
                logger.error("%s", result.error)
                if on_error is not None:
                    on_error(result.error)
        finally:
            outcome.set_result(result)

    def _transcribe_session(
        self, session: TranscriptionSession, audio: np.ndarray | None
    ) -> TranscriptionResult:
        path = session.audio_file_path
        try:
            if audio is None or audio.size == 0:
                return TranscriptionResult.failure(ERROR_PREFIX + "no audio captured")
            write_audio_file(path, audio, self.config.sample_rate)
            return self.transcribe(path)
        except KeyboardAssistError as e:
            return TranscriptionResult.failure(ERROR_PREFIX + str(e))
        finally:
            self._discard_audio(path)

    def transcribe_file(self, path: Path) -> str:
        """
        Upload ``path`` and return the trimmed transcript.

        Raises:
            TranscriptionError: On I/O, HTTP, or empty-result failures
        """
        path = Path(path)
        data = build_transcription_form(self.config)
        start_time = time.perf_counter()
        try:
            with path.open("rb") as audio_file:
                files = {"file": (path.name, audio_file, audio_mime_type(path))}
                body = self._http.post_multipart(
                    self.config.endpoint, self.config.api_key, data, files
                )
        except OSError as e:
            raise TranscriptionError(f"Could not read audio file {path}: {e}") from e
        except HttpRequestError as e:
            raise TranscriptionError(str(e)) from e

        text = body.strip()
        if not text:
            raise TranscriptionError("Empty response from OpenAI")
        logger.info(
            "Transcription statistics: total_time=%.3fs chars=%d model=%s",
            time.perf_counter() - start_time,
            len(text),
            self.config.model,
        )
        if self.config.debug_logging:
            logger.info("Transcription response: %s", text)
        return text

    def transcribe(self, path: Path) -> TranscriptionResult:
        """Transcribe an existing audio file without raising."""
        try:
            return TranscriptionResult.success(self.transcribe_file(path))
        except TranscriptionError as e:
            return TranscriptionResult.failure(ERROR_PREFIX + str(e))

    def close(self) -> None:
        """Release the microphone and drop queued uploads."""
        session = self._session
        self._recorder.shutdown()
        self._is_recording = False
        if session is not None and session.is_recording:
            session.is_recording = False
            self._discard_audio(session.audio_file_path)
        self._worker.shutdown(wait=False, cancel_futures=True)
        self._http.close()

    def __enter__(self) -> AudioTranscriptionClient:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
