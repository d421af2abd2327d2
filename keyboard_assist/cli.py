"""Command-line interface for keyboard-assist."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Optional, Sequence

import pyperclip

from . import credentials
from .audio import resolve_input_device
from .correction import TextCorrectionClient, list_models
from .errors import CorrectionError, RecordingError
from .logging_config import setup_logging
from .results import CorrectionResult
from .settings_store import load_correction_config, load_settings, load_transcription_config
from .transcription import AudioTranscriptionClient


def copy_to_clipboard(text: str) -> None:
    try:
        pyperclip.copy(text)
        print("(copied to clipboard)")
    except pyperclip.PyperclipException as exc:
        print("(clipboard copy failed)", exc)


def format_correction(result: CorrectionResult) -> str:
    lines = [result.corrected_text]
    if result.sources:
        lines.append("")
        lines.append("Sources:")
        for number, source in enumerate(result.sources, start=1):
            title = source.title or source.url
            lines.append(
                f"  [{number}] {title} <{source.url}> "
                f"(chars {source.citation_start}-{source.citation_end})"
            )
    return "\n".join(lines)


def _require_key(api_key: str) -> bool:
    if api_key:
        return True
    print(
        f"No API key configured. Set {credentials.API_KEY_ENV_VAR} or run "
        "'keyboard-assist set-key <KEY>'."
    )
    return False


def cmd_correct(args: argparse.Namespace) -> int:
    config = load_correction_config(load_settings()).with_overrides(
        debug_logging=True if args.debug else None,
    )
    if not _require_key(config.api_key):
        return 2

    with TextCorrectionClient(config) as client:
        result = client.correct(
            args.text,
            language=args.language,
            instructions=args.instructions,
            enable_web_search=False if args.no_web_search else None,
        )
    if result is None:
        print("(correction failed, see log for details)")
        return 1

    print(format_correction(result))
    if args.copy:
        copy_to_clipboard(result.corrected_text)
    return 0


def cmd_transcribe(args: argparse.Namespace) -> int:
    config = load_transcription_config(load_settings()).with_overrides(
        language=args.language,
        prompt=args.prompt,
        debug_logging=True if args.debug else None,
    )
    if not _require_key(config.api_key):
        return 2

    with AudioTranscriptionClient(config) as client:
        result = client.transcribe(Path(args.file))
    if not result.ok:
        print(result.error)
        return 1

    print(result.text)
    if args.copy:
        copy_to_clipboard(result.text)
    return 0


def cmd_dictate(args: argparse.Namespace) -> int:
    config = load_transcription_config(load_settings()).with_overrides(
        language=args.language,
        debug_logging=True if args.debug else None,
    )
    if not _require_key(config.api_key):
        return 2

    with AudioTranscriptionClient(config) as client:
        try:
            client.start_recording(resolve_input_device(args.input_device))
        except RecordingError as exc:
            print(exc)
            return 1

        print("[REC] Speak now. Press Enter to stop.")
        try:
            input()
        except EOFError:
            pass

        print("[REC] Stopped. Transcribing...")
        result = client.stop_recording().result()

    if not result.ok:
        print(result.error)
        return 1

    print(result.text)
    if args.copy:
        copy_to_clipboard(result.text)
    return 0


def cmd_models(args: argparse.Namespace) -> int:
    config = load_correction_config(load_settings())
    if not _require_key(config.api_key):
        return 2
    try:
        models = list_models(config)
    except CorrectionError as exc:
        print(exc)
        return 1
    for model in models:
        print(model)
    return 0


def cmd_set_key(args: argparse.Namespace) -> int:
    try:
        credentials.store_credential(credentials.API_KEY_NAME, args.key)
    except (credentials.CredentialStorageError, ValueError) as exc:
        print(f"Could not store API key: {exc}")
        return 1
    print("API key stored in the system keyring.")
    return 0


def cmd_clear_key(args: argparse.Namespace) -> int:
    try:
        credentials.delete_credential(credentials.API_KEY_NAME)
    except credentials.CredentialStorageError as exc:
        print(f"Could not delete API key: {exc}")
        return 1
    print("API key removed from the system keyring.")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="keyboard-assist",
        description="LLM autocorrect and speech-to-text for keyboard input",
    )
    parser.add_argument("--debug", action="store_true", help="Log request payloads and responses")
    sub = parser.add_subparsers(dest="command", required=True)

    correct = sub.add_parser("correct", help="Autocorrect a piece of text")
    correct.add_argument("text", help="Text to correct")
    correct.add_argument("--language", default=None, help="Target language hint, e.g. en")
    correct.add_argument("--instructions", default=None, help="Override the system instructions")
    correct.add_argument("--no-web-search", action="store_true", help="Disable the web search tool")
    correct.add_argument("--copy", action="store_true", help="Copy the result to the clipboard")
    correct.set_defaults(func=cmd_correct)

    transcribe = sub.add_parser("transcribe", help="Transcribe an audio file")
    transcribe.add_argument("file", help="Audio file to upload (wav, m4a, mp3, ...)")
    transcribe.add_argument("--language", default=None, help="Spoken language hint, e.g. en")
    transcribe.add_argument("--prompt", default=None, help="Priming prompt for the transcriber")
    transcribe.add_argument("--copy", action="store_true", help="Copy the result to the clipboard")
    transcribe.set_defaults(func=cmd_transcribe)

    dictate = sub.add_parser("dictate", help="Record from the microphone and transcribe")
    dictate.add_argument("--input-device", default=None, help="Input device index or name substring")
    dictate.add_argument("--language", default=None, help="Spoken language hint, e.g. en")
    dictate.add_argument("--copy", action="store_true", help="Copy the result to the clipboard")
    dictate.set_defaults(func=cmd_dictate)

    models = sub.add_parser("models", help="List models available to the API key")
    models.set_defaults(func=cmd_models)

    set_key = sub.add_parser("set-key", help="Store the OpenAI API key in the system keyring")
    set_key.add_argument("key")
    set_key.set_defaults(func=cmd_set_key)

    clear_key = sub.add_parser("clear-key", help="Remove the stored OpenAI API key")
    clear_key.set_defaults(func=cmd_clear_key)

    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(logging.DEBUG if args.debug else logging.WARNING)
    return args.func(args)


if __name__ == "__main__":
    raise SystemExit(main())
