"""Tests for the audio transcription client."""

import threading
from pathlib import Path
from unittest.mock import MagicMock

import httpx
import numpy as np
import pytest

from keyboard_assist.audio import AudioRecorder
from keyboard_assist.config import TranscriptionConfig
from keyboard_assist.errors import RecordingError, TranscriptionError
from keyboard_assist.http_client import HttpRequestExecutor
from keyboard_assist.results import TranscriptionResult
from keyboard_assist.transcription import AudioTranscriptionClient, build_transcription_form

TEST_ENDPOINT = "https://api.example.test/v1/audio/transcriptions"
ONE_SECOND = np.zeros(16000, dtype=np.float32)


def fake_recorder(audio=ONE_SECOND) -> MagicMock:
    recorder = MagicMock(spec=AudioRecorder)
    recorder.get_buffer.return_value = audio
    return recorder


def make_client(handler, tmp_path, recorder=None, **config_changes) -> AudioTranscriptionClient:
    config_changes.setdefault("api_key", "sk-test")
    config = TranscriptionConfig(endpoint=TEST_ENDPOINT, **config_changes)
    executor = HttpRequestExecutor(transport=httpx.MockTransport(handler))
    return AudioTranscriptionClient(
        config,
        executor=executor,
        recorder=recorder or fake_recorder(),
        audio_dir=tmp_path,
    )


class TestBuildTranscriptionForm:
    def test_all_fields(self):
        config = TranscriptionConfig(model="gpt-4o-transcribe", language="en", prompt="Mostly English")
        assert build_transcription_form(config) == {
            "model": "gpt-4o-transcribe",
            "response_format": "text",
            "language": "en",
            "prompt": "Mostly English",
        }

    def test_optional_fields_omitted(self):
        config = TranscriptionConfig(language=None, prompt=None)
        form = build_transcription_form(config)
        assert "language" not in form
        assert "prompt" not in form
        assert form["response_format"] == "text"


class TestTranscribeFile:
    """Uploading an existing audio file."""

    def test_success_trims_text(self, tmp_path):
        audio_file = tmp_path / "clip.m4a"
        audio_file.write_bytes(b"fake m4a")
        seen = {}

        def handler(request):
            seen["body"] = request.read()
            seen["auth"] = request.headers["Authorization"]
            return httpx.Response(200, text="  hola mundo\n")

        with make_client(handler, tmp_path) as client:
            assert client.transcribe_file(audio_file) == "hola mundo"

        assert seen["auth"] == "Bearer sk-test"
        assert b'name="response_format"' in seen["body"]
        assert b'filename="clip.m4a"' in seen["body"]
        assert b"fake m4a" in seen["body"]

    def test_error_status(self, tmp_path):
        audio_file = tmp_path / "clip.wav"
        audio_file.write_bytes(b"RIFF")

        with make_client(lambda request: httpx.Response(400, text="bad audio"), tmp_path) as client:
            with pytest.raises(TranscriptionError, match="400: bad audio"):
                client.transcribe_file(audio_file)

    def test_blank_body(self, tmp_path):
        audio_file = tmp_path / "clip.wav"
        audio_file.write_bytes(b"RIFF")

        with make_client(lambda request: httpx.Response(200, text=" \n"), tmp_path) as client:
            with pytest.raises(TranscriptionError, match="Empty response"):
                client.transcribe_file(audio_file)

    def test_non_ascii_api_key_is_a_failure_result(self, tmp_path):
        audio_file = tmp_path / "clip.wav"
        audio_file.write_bytes(b"RIFF")

        with make_client(MagicMock(), tmp_path, api_key="sk-é") as client:
            result = client.transcribe(audio_file)

        assert not result.ok
        assert "non-ASCII" in result.error

    def test_missing_file(self, tmp_path):
        with make_client(lambda request: httpx.Response(200, text="x"), tmp_path) as client:
            result = client.transcribe(tmp_path / "missing.wav")
        assert not result.ok
        assert result.error.startswith("Transcription failed: ")


class TestRecordingLifecycle:
    """start_recording / stop_recording state handling."""

    def test_start_sets_recording(self, tmp_path):
        recorder = fake_recorder()
        with make_client(lambda request: httpx.Response(200, text="x"), tmp_path, recorder) as client:
            client.start_recording(device=3)

            assert client.is_recording is True
            assert client.is_transcribing is False
            assert client.session.audio_file_path.parent == tmp_path
            recorder.start.assert_called_once_with(3)

    def test_start_failure_leaves_idle(self, tmp_path):
        recorder = fake_recorder()
        recorder.start.side_effect = RecordingError("no microphone")

        with make_client(lambda request: httpx.Response(200, text="x"), tmp_path, recorder) as client:
            with pytest.raises(RecordingError):
                client.start_recording()
            assert client.is_recording is False
            assert client.session is None
        assert list(tmp_path.iterdir()) == []

    def test_flags_around_upload(self, tmp_path):
        observed = {}
        client = None

        def handler(request):
            observed["recording_during_upload"] = client.is_recording
            observed["transcribing_during_upload"] = client.is_transcribing
            return httpx.Response(200, text="Hello world")

        def on_result(text):
            observed["text"] = text
            observed["transcribing_in_callback"] = client.is_transcribing

        client = make_client(handler, tmp_path)
        with client:
            client.start_recording()
            future = client.stop_recording(on_result, lambda message: None)
            assert client.is_recording is False
            result = future.result(timeout=5)

        assert result == TranscriptionResult.success("Hello world")
        assert observed == {
            "recording_during_upload": False,
            "transcribing_during_upload": True,
            "text": "Hello world",
            "transcribing_in_callback": False,
        }
        assert client.is_transcribing is False

    def test_exactly_one_callback_on_success(self, tmp_path):
        on_result = MagicMock()
        on_error = MagicMock()

        with make_client(lambda request: httpx.Response(200, text="text"), tmp_path) as client:
            client.start_recording()
            client.stop_recording(on_result, on_error).result(timeout=5)

        on_result.assert_called_once_with("text")
        on_error.assert_not_called()

    @pytest.mark.parametrize("status", [400, 401, 500])
    def test_error_status_calls_error_callback(self, tmp_path, status):
        on_result = MagicMock()
        on_error = MagicMock()

        handler = lambda request: httpx.Response(status, text="remote says no")  # noqa: E731
        with make_client(handler, tmp_path) as client:
            client.start_recording()
            result = client.stop_recording(on_result, on_error).result(timeout=5)

        assert not result.ok
        on_result.assert_not_called()
        on_error.assert_called_once()
        message = on_error.call_args[0][0]
        assert message.startswith("Transcription failed: ")
        assert str(status) in message
        assert "remote says no" in message

    def test_network_failure_calls_error_callback(self, tmp_path):
        def handler(request):
            raise httpx.ConnectError("unreachable", request=request)

        on_error = MagicMock()
        with make_client(handler, tmp_path) as client:
            client.start_recording()
            result = client.stop_recording(on_error=on_error).result(timeout=5)

        assert "unreachable" in result.error
        on_error.assert_called_once_with(result.error)

    def test_non_ascii_api_key_calls_error_callback(self, tmp_path):
        handler = MagicMock()
        on_error = MagicMock()
        with make_client(handler, tmp_path, api_key="sk-é") as client:
            client.start_recording()
            result = client.stop_recording(on_error=on_error).result(timeout=5)

        assert "non-ASCII" in result.error
        on_error.assert_called_once_with(result.error)
        handler.assert_not_called()
        assert list(tmp_path.iterdir()) == []

    def test_no_audio_captured(self, tmp_path):
        handler = MagicMock(return_value=httpx.Response(200, text="x"))
        with make_client(handler, tmp_path, fake_recorder(audio=None)) as client:
            client.start_recording()
            result = client.stop_recording().result(timeout=5)

        assert result.error == "Transcription failed: no audio captured"
        handler.assert_not_called()

    def test_stop_without_start(self, tmp_path):
        on_error = MagicMock()
        with make_client(lambda request: httpx.Response(200, text="x"), tmp_path) as client:
            result = client.stop_recording(on_error=on_error).result(timeout=5)
        assert not result.ok
        on_error.assert_called_once()

    def test_audio_file_removed_after_upload(self, tmp_path):
        uploaded = {}

        def handler(request):
            uploaded["body"] = request.read()
            return httpx.Response(200, text="done")

        with make_client(handler, tmp_path) as client:
            client.start_recording()
            path = client.session.audio_file_path
            client.stop_recording().result(timeout=5)

        assert b"RIFF" in uploaded["body"]
        assert not path.exists()
        assert list(tmp_path.iterdir()) == []

    def test_audio_file_removed_after_failure(self, tmp_path):
        with make_client(lambda request: httpx.Response(500, text="x"), tmp_path) as client:
            client.start_recording()
            client.stop_recording().result(timeout=5)
        assert list(tmp_path.iterdir()) == []

    def test_keep_audio(self, tmp_path):
        with make_client(lambda request: httpx.Response(200, text="x"), tmp_path, keep_audio=True) as client:
            client.start_recording()
            path = client.session.audio_file_path
            client.stop_recording().result(timeout=5)
        assert path.exists()
        assert path.stat().st_size > 0

    def test_restart_discards_previous_session(self, tmp_path):
        with make_client(lambda request: httpx.Response(200, text="x"), tmp_path) as client:
            client.start_recording()
            first = client.session.audio_file_path
            client.start_recording()
            second = client.session.audio_file_path

            assert first != second
            assert not first.exists()
            assert client.is_recording is True

    def test_dispatcher_receives_delivery(self, tmp_path):
        delivered = []
        dispatched = threading.Event()

        def dispatcher(fn):
            delivered.append(fn)
            dispatched.set()

        config = TranscriptionConfig(api_key="sk-test", endpoint=TEST_ENDPOINT)
        executor = HttpRequestExecutor(
            transport=httpx.MockTransport(lambda request: httpx.Response(200, text="queued"))
        )
        client = AudioTranscriptionClient(
            config, executor=executor, recorder=fake_recorder(), dispatcher=dispatcher, audio_dir=tmp_path
        )
        on_result = MagicMock()
        with client:
            client.start_recording()
            future = client.stop_recording(on_result)
            assert dispatched.wait(timeout=5)

            # Nothing is delivered until the UI context runs the callback
            assert client.is_transcribing is True
            on_result.assert_not_called()
            assert not future.done()

            delivered[0]()

        on_result.assert_called_once_with("queued")
        assert future.result(timeout=1).text == "queued"
        assert client.is_transcribing is False

    def test_close_releases_recorder(self, tmp_path):
        recorder = fake_recorder()
        client = make_client(lambda request: httpx.Response(200, text="x"), tmp_path, recorder)
        client.start_recording()
        path = client.session.audio_file_path
        client.close()

        recorder.shutdown.assert_called_once()
        assert client.is_recording is False
        assert not Path(path).exists()

    def test_close_cancels_queued_upload(self, tmp_path):
        uploading = threading.Event()
        release = threading.Event()

        def handler(request):
            uploading.set()
            release.wait(timeout=5)
            return httpx.Response(200, text="first")

        client = make_client(handler, tmp_path)
        client.start_recording()
        first = client.stop_recording()
        assert uploading.wait(timeout=5)

        on_result = MagicMock()
        on_error = MagicMock()
        client.start_recording()
        queued_path = client.session.audio_file_path
        queued = client.stop_recording(on_result, on_error)

        client.close()
        release.set()

        result = queued.result(timeout=5)
        assert result.error == "Transcription failed: cancelled"
        on_error.assert_called_once_with(result.error)
        on_result.assert_not_called()
        assert not queued_path.exists()

        first.result(timeout=5)
        assert list(tmp_path.iterdir()) == []

    def test_stop_after_close_calls_error_callback(self, tmp_path):
        handler = MagicMock()
        on_result = MagicMock()
        on_error = MagicMock()
        client = make_client(handler, tmp_path)
        client.close()

        client.start_recording()
        path = client.session.audio_file_path
        result = client.stop_recording(on_result, on_error).result(timeout=5)

        assert result.error.startswith("Transcription failed: ")
        on_error.assert_called_once_with(result.error)
        on_result.assert_not_called()
        handler.assert_not_called()
        assert not path.exists()
        assert client.is_transcribing is False
        assert client.session is None


class TestTranscriptionResult:
    def test_exactly_one_field(self):
        with pytest.raises(ValueError):
            TranscriptionResult()
        with pytest.raises(ValueError):
            TranscriptionResult(text="a", error="b")

    def test_ok(self):
        assert TranscriptionResult.success("").ok is True
        assert TranscriptionResult.failure("x").ok is False
