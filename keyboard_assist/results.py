"""Request and result types returned by the clients."""

from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class WebSource:
    """A web page cited by the corrected text.

    ``citation_start`` and ``citation_end`` are character offsets into
    ``CorrectionResult.corrected_text`` exactly as the service reported them.
    """

    url: str
    title: str
    citation_start: int
    citation_end: int


@dataclass(frozen=True)
class CorrectionRequest:
    input_text: str
    instructions: str
    target_language: str | None = None
    enable_web_search: bool = True


@dataclass(frozen=True)
class CorrectionResult:
    corrected_text: str
    sources: tuple[WebSource, ...] = ()
    used_web_search: bool = False


@dataclass(frozen=True)
class TranscriptionResult:
    """Outcome of one transcription: either ``text`` or ``error`` is set."""

    text: str | None = None
    error: str | None = None

    def __post_init__(self):
        if (self.text is None) == (self.error is None):
            raise ValueError("TranscriptionResult needs exactly one of text or error")

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, text: str) -> "TranscriptionResult":
        return cls(text=text)

    @classmethod
    def failure(cls, message: str) -> "TranscriptionResult":
        return cls(error=message)


@dataclass
class TranscriptionSession:
    """State of the current recording/transcription cycle."""

    audio_file_path: Path
    is_recording: bool = False
    is_transcribing: bool = False
