"""Configuration defaults and client configuration values for keyboard-assist."""

from dataclasses import dataclass, replace

# Remote endpoints
DEFAULT_RESPONSES_URL = "https://api.openai.com/v1/responses"
DEFAULT_TRANSCRIPTIONS_URL = "https://api.openai.com/v1/audio/transcriptions"
DEFAULT_API_BASE_URL = "https://api.openai.com/v1"

# HTTP defaults
DEFAULT_TIMEOUT = 30.0  # seconds, applied to connect and read

# Text correction defaults
DEFAULT_CORRECTION_MODEL = "gpt-4.1"
DEFAULT_CORRECTION_TEMP = 0.3
DEFAULT_WEB_SEARCH = True
DEFAULT_CORRECTION_LANGUAGE: str | None = None

# Transcription defaults
DEFAULT_TRANSCRIPTION_MODEL = "gpt-4o-transcribe"
DEFAULT_TRANSCRIPTION_LANGUAGE: str | None = "en"
DEFAULT_TRANSCRIPTION_PROMPT: str | None = (
    "These recordings are mostly in english, may contain or be in spanish. "
    "They will never be in any other language, so don't return anything other "
    "than english or spanish."
)

# Audio defaults
SAMPLE_RATE = 16000
INPUT_CHANNELS = 1
CHUNK_MS = 50
AUDIO_FILE_SUFFIX = ".wav"

# Instruction used by the one-shot autocorrect preset
AUTOCORRECT_PROMPT = (
    "rewrite & autocorrect this sentence without making any changes to its "
    "underlying message or style"
)

# Default correction instructions
DEFAULT_CORRECTION_INSTRUCTIONS = """
You are the autocorrect engine of a mobile keyboard. The user's input is text they just typed.

Rewrite the text so that:
- Spelling, grammar, capitalization and punctuation are correct
- The underlying message, tone and style are unchanged
- Slang, names and deliberate casing are kept as typed
- The language of the input is kept unless a target language is given

If the text makes a factual claim you cannot verify, you may search the web and cite your sources.

Output ONLY the corrected text. No quotes, no explanations, no greetings.
""".strip()


@dataclass(frozen=True)
class CorrectionConfig:
    """Settings for the text correction client."""

    api_key: str = ""
    endpoint: str = DEFAULT_RESPONSES_URL
    model: str = DEFAULT_CORRECTION_MODEL
    instructions: str = DEFAULT_CORRECTION_INSTRUCTIONS
    language: str | None = DEFAULT_CORRECTION_LANGUAGE
    temperature: float = DEFAULT_CORRECTION_TEMP
    enable_web_search: bool = DEFAULT_WEB_SEARCH
    timeout: float = DEFAULT_TIMEOUT
    debug_logging: bool = False

    def with_overrides(self, **changes) -> "CorrectionConfig":
        """Return a copy with the non-None ``changes`` applied."""
        return replace(self, **{k: v for k, v in changes.items() if v is not None})


@dataclass(frozen=True)
class TranscriptionConfig:
    """Settings for the audio transcription client."""

    api_key: str = ""
    endpoint: str = DEFAULT_TRANSCRIPTIONS_URL
    model: str = DEFAULT_TRANSCRIPTION_MODEL
    language: str | None = DEFAULT_TRANSCRIPTION_LANGUAGE
    prompt: str | None = DEFAULT_TRANSCRIPTION_PROMPT
    sample_rate: int = SAMPLE_RATE
    timeout: float = DEFAULT_TIMEOUT
    keep_audio: bool = False
    debug_logging: bool = False

    def with_overrides(self, **changes) -> "TranscriptionConfig":
        """Return a copy with the non-None ``changes`` applied."""
        return replace(self, **{k: v for k, v in changes.items() if v is not None})


def normalize_language(language: str | None) -> str | None:
    """Turn blank language hints into ``None`` and trim the rest."""
    if language is None:
        return None
    language = language.strip()
    return language or None
