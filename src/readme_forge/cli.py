"""readme-forge: generate a README for a code repository.

Overview
--------
The repository comes either from GitHub (``--repo URL``) or from a local zip
archive (``--archive FILE``). Its files are filtered (``.gitignore`` rules,
lockfiles, build directories, size caps, known source and manifest types),
fetched concurrently and assembled into a single context document capped at
1.5 MiB, which is handed to a Gemini model.

Usage
-----
Run ``readme-forge --help`` for full options. Common examples:
    - Context document only, no model call:
        readme-forge context --repo https://github.com/acme/widgets --output context.txt

    - README from a zip archive, exported to PDF:
        readme-forge generate --archive widgets.zip --output README.pdf

    - Rewrite a section of an existing README:
        readme-forge edit --input README.md --selection "## Usage" --instruction "Add a curl example"

    - Ask the assistant a question, reply streamed to stdout:
        readme-forge chat --message "How do I add a badge to a README?"

``GITHUB_TOKEN`` and ``GEMINI_API_KEY`` are read from the environment or a ``.env`` file.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path
from typing import TYPE_CHECKING

import structlog
from pydantic import ValidationError

from readme_forge import __version__
from readme_forge.exceptions import ReadmeForgeError
from readme_forge.export import ExportFormat, export_document, format_from_suffix
from readme_forge.generation import GeminiClient, apply_edit, generate_readme, stream_readme
from readme_forge.logging import configure_logging
from readme_forge.pipeline import backend_for, collect_context
from readme_forge.settings import Settings

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator, Sequence

logger = structlog.get_logger(__name__)

CHAT_EXIT_WORDS = frozenset({"exit", "quit"})


def _add_source_args(p: argparse.ArgumentParser) -> None:
    source = p.add_mutually_exclusive_group(required=True)
    source.add_argument("--repo", type=str, help="GitHub repository URL.")
    source.add_argument("--archive", type=Path, help="Zip archive of the repository.")
    p.add_argument("--token", type=str, help="GitHub personal access token (default: $GITHUB_TOKEN).")
    p.add_argument("--api-url", type=str, help="GitHub API root.")
    p.add_argument("--timeout", type=float, help="HTTP timeout in seconds.")
    p.add_argument(
        "--max-concurrency",
        type=int,
        help="Cap on concurrent file fetches (0 = unlimited).",
    )


def _add_model_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--api-key", type=str, help="Gemini API key (default: $GEMINI_API_KEY).")
    p.add_argument("--model", type=str, help="Model used for README generation.")


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="readme-forge",
        description="Generate a README for a GitHub repository or a zip archive.",
    )
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    p.add_argument("--log-file", type=str, default="", help="Log file path.")
    sub = p.add_subparsers(dest="command", required=True)

    ctx = sub.add_parser("context", help="Write the assembled context document.")
    _add_source_args(ctx)
    ctx.add_argument("--output", type=Path, help="Output file (default: stdout).")

    gen = sub.add_parser("generate", help="Generate a README with the model.")
    _add_source_args(gen)
    _add_model_args(gen)
    gen.add_argument("--output", type=Path, help="Output file (default: stdout).")
    gen.add_argument(
        "--format",
        type=str,
        choices=[f.value for f in ExportFormat],
        default="",
        help="Force export format (default: from the output suffix).",
    )
    gen.add_argument("--thinking", action="store_true", help="Enable extended thinking.")
    gen.add_argument("--stream", action="store_true", help="Stream the model answer.")

    edit = sub.add_parser("edit", help="Apply an AI edit to a document.")
    _add_model_args(edit)
    edit.add_argument("--input", type=Path, required=True, help="Document to edit.")
    edit.add_argument("--instruction", type=str, required=True, help="Edit instruction.")
    edit.add_argument("--selection", type=str, default="", help="Text to edit (default: whole document).")
    edit.add_argument("--output", type=Path, help="Output file (default: stdout).")

    chat = sub.add_parser("chat", help="Chat with the assistant; replies are streamed.")
    chat.add_argument("--api-key", type=str, help="Gemini API key (default: $GEMINI_API_KEY).")
    chat.add_argument(
        "--message",
        action="append",
        help="Message to send; repeat for several turns (default: read lines from stdin).",
    )
    return p


def parse_args(argv: Sequence[str] | None = None) -> Settings:
    p = build_parser()
    args = p.parse_args(argv)
    values = {k: v for k, v in vars(args).items() if v is not None}
    try:
        return Settings(**values)
    except ValidationError as e:
        p.error(str(e))
        raise  # unreachable, p.error exits


def print_progress(message: str) -> None:
    print(message, file=sys.stderr)


async def build_context(settings: Settings) -> tuple[str, str]:
    """Run the selection pipeline for the configured source.

    Returns:
        tuple[str, str]: the context document and a label for the repository
    """
    backend = backend_for(
        settings.source,
        settings.token or None,
        api_url=settings.api_url,
        timeout=settings.timeout,
    )
    async with backend:
        context = await collect_context(
            backend,
            on_progress=print_progress,
            max_concurrency=settings.max_concurrency or None,
        )
    return context, backend.describe()


def write_output(data: bytes, output: Path | None) -> None:
    if output is None:
        sys.stdout.write(data.decode("utf-8"))
        return
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_bytes(data)
    print(f"Wrote {output} bytes={len(data)}")


def stream_output(chunks: Iterable[str], output: Path | None) -> str:
    """Write text chunks as they arrive, flushing after each one.

    Returns:
        str: the full text that was written
    """
    parts: list[str] = []
    if output is None:
        for chunk in chunks:
            sys.stdout.write(chunk)
            sys.stdout.flush()
            parts.append(chunk)
        return "".join(parts)

    output.parent.mkdir(parents=True, exist_ok=True)
    with output.open("w", encoding="utf-8", newline="") as fh:
        for chunk in chunks:
            fh.write(chunk)
            fh.flush()
            parts.append(chunk)
    text = "".join(parts)
    print(f"Wrote {output} bytes={len(text.encode('utf-8'))}")
    return text


def run_context(settings: Settings) -> None:
    context, _label = asyncio.run(build_context(settings))
    write_output(context.encode("utf-8"), settings.output)


def run_generate(settings: Settings) -> None:
    fmt = settings.format or (format_from_suffix(settings.output.suffix) if settings.output else ExportFormat.MD)
    if settings.output is None and fmt == ExportFormat.PDF:
        raise ReadmeForgeError(message="PDF export needs --output.")
    context, label = asyncio.run(build_context(settings))
    client = GeminiClient(settings.api_key, model=settings.model, thinking=settings.thinking)
    print_progress("Generating README...")
    if settings.stream and fmt != ExportFormat.PDF:
        # md and txt exports are the raw text, so chunks go out unchanged
        stream_output(stream_readme(client, context, repo_label=label), settings.output)
        return
    readme = generate_readme(client, context, repo_label=label, stream=settings.stream)
    write_output(export_document(readme, fmt, title=label), settings.output)


def run_edit(settings: Settings) -> None:
    if settings.input is None:
        raise ReadmeForgeError(message="--input is required.")
    try:
        document = settings.input.read_text(encoding="utf-8")
    except OSError as e:
        raise ReadmeForgeError(message=f"Could not read {settings.input}: {e}") from e
    client = GeminiClient(settings.api_key, model=settings.model)
    updated = apply_edit(client, document, settings.instruction, settings.selection or None)
    write_output(updated.encode("utf-8"), settings.output)


def chat_messages(settings: Settings) -> Iterator[str]:
    """Messages given with --message, or lines read from stdin until EOF or exit/quit."""
    if settings.message:
        yield from settings.message
        return
    interactive = sys.stdin.isatty()
    while True:
        if interactive:
            print("you> ", end="", file=sys.stderr, flush=True)
        line = sys.stdin.readline()
        if not line:
            return
        text = line.strip()
        if text.lower() in CHAT_EXIT_WORDS:
            return
        if text:
            yield text


def run_chat(settings: Settings) -> None:
    session = GeminiClient(settings.api_key).start_chat()
    for turn, message in enumerate(chat_messages(settings), start=1):
        reply = stream_output(session.send_stream(message), None)
        sys.stdout.write("\n")
        sys.stdout.flush()
        logger.info("chat_turn", turn=turn, message_chars=len(message), reply_chars=len(reply))


COMMANDS = {
    "context": run_context,
    "generate": run_generate,
    "edit": run_edit,
    "chat": run_chat,
}


def main(argv: Sequence[str] | None = None) -> int:
    settings = parse_args(argv)
    configure_logging(settings.log_file or None)

    try:
        COMMANDS[settings.command](settings)
    except ReadmeForgeError as e:
        logger.error("command_failed", command=settings.command, error=str(e), kind=type(e).__name__)
        print(f"Error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
