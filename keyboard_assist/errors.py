"""Exception types shared by the keyboard-assist clients."""


class KeyboardAssistError(Exception):
    """Base class for keyboard-assist failures."""


class HttpRequestError(KeyboardAssistError):
    """Raised when an HTTP exchange with the remote service fails."""


class HttpStatusError(HttpRequestError):
    """Raised when the remote service answers with a non-2xx status."""

    def __init__(self, status_code: int, body: str):
        self.status_code = status_code
        self.body = body
        super().__init__(f"OpenAI API error {status_code}: {body}")


class HttpTransportError(HttpRequestError):
    """Raised on connection, timeout or other network I/O failures."""


class EmptyResponseError(HttpRequestError):
    """Raised when a successful response carries no body."""


class ResponseParseError(KeyboardAssistError):
    """Raised when a response body is not the JSON object we expect."""


class CorrectionError(KeyboardAssistError):
    """Raised when text correction fails."""


class TranscriptionError(KeyboardAssistError):
    """Raised when transcription fails."""


class RecordingError(KeyboardAssistError):
    """Raised when the microphone recorder cannot be started or read."""
