"""Generative-model side of README generation.

The pipeline only needs something satisfying `GenerationClient`; the Gemini
adapter below is the one the command line uses.
"""

from __future__ import annotations

import textwrap
from typing import TYPE_CHECKING, Any, Protocol

import structlog
from google import genai
from google.genai import errors, types

from readme_forge.exceptions import GenerationError

if TYPE_CHECKING:
    from collections.abc import Iterator

logger = structlog.get_logger(__name__)

DEFAULT_MODEL = "gemini-2.5-pro"
EDIT_MODEL = "gemini-2.5-flash"
THINKING_BUDGET = 32768
CHAT_SYSTEM_INSTRUCTION = (
    "You are a helpful and friendly AI assistant for a developer tool. Answer questions concisely and clearly."
)

README_INSTRUCTIONS = textwrap.dedent(
    """\
    You are an expert software engineer and technical writer tasked with creating a README.md file
    for a software repository. Based on the repository files provided below, infer the project's
    purpose, technology stack, file structure, and key features.

    Generate a comprehensive, well-structured, and high-quality README.md file in Markdown format.

    The README should include the following sections:
    - **Project Title**: An engaging title for the project.
    - **Description**: A detailed explanation of what the project does.
    - **Key Features**: A bulleted list of the main functionalities.
    - **Tech Stack**: A list of technologies, frameworks, and libraries used.
    - **Installation & Setup**: A step-by-step guide on how to get the project running locally.
    - **Usage**: Instructions or examples on how to use the project.
    - **Contributing**: Guidelines for potential contributors.
    - **License**: A mention of the project's license (e.g., MIT).

    Please provide only the raw Markdown content for the README file.
    """,
)


def build_readme_prompt(context: str, *, repo_label: str = "") -> str:
    """Combine the README instructions with an assembled context document."""
    header = f"Repository: {repo_label}\n\n" if repo_label else ""
    return f"{README_INSTRUCTIONS}\n{header}Repository files:\n\n{context}"


def build_edit_prompt(selected_text: str, instruction: str) -> str:
    return (
        "You are editing part of a README written in Markdown.\n"
        f"Instruction: {instruction}\n\n"
        "Rewrite the following text accordingly and return only the rewritten Markdown, "
        "without commentary or code fences around it.\n\n"
        f"{selected_text}"
    )


def strip_markdown_fence(text: str) -> str:
    """Remove a single ```markdown fence wrapping the whole answer, if present."""
    stripped = text.strip()
    if stripped.startswith("```") and stripped.endswith("```"):
        lines = stripped.splitlines()
        if len(lines) >= 2:  # noqa: PLR2004
            return "\n".join(lines[1:-1]).strip() + "\n"
    return text


class GenerationClient(Protocol):
    def generate(self, prompt: str) -> str: ...

    def generate_stream(self, prompt: str) -> Iterator[str]: ...

    def edit(self, selected_text: str, instruction: str) -> str: ...


class ChatSession:
    """A conversation owned by its caller.

    Each session keeps its own history; nothing is shared at module level.
    """

    def __init__(self, chat: Any) -> None:  # noqa: ANN401
        self._chat = chat

    def send(self, message: str) -> str:
        try:
            response = self._chat.send_message(message)
        except errors.APIError as e:
            logger.error("chat_failed", error=str(e))
            raise GenerationError(message=f"Chat request failed: {e}") from e
        return response.text or ""

    def send_stream(self, message: str) -> Iterator[str]:
        """Send `message` and yield the reply as the model produces it."""
        try:
            for chunk in self._chat.send_message_stream(message):
                if chunk.text:
                    yield chunk.text
        except errors.APIError as e:
            logger.error("chat_failed", error=str(e), stream=True)
            raise GenerationError(message=f"Chat request failed: {e}") from e


class GeminiClient:
    """`GenerationClient` backed by the Google Gen AI SDK.

    Args:
        api_key: Gemini API key
        model: model used for README generation
        edit_model: model used for inline edits and chat
        thinking: enable extended thinking for generation
        client: an existing ``genai.Client`` (mostly for tests)
    """

    def __init__(
        self,
        api_key: str | None = None,
        *,
        model: str = DEFAULT_MODEL,
        edit_model: str = EDIT_MODEL,
        thinking: bool = False,
        client: genai.Client | None = None,
    ) -> None:
        if client is None and not api_key:
            raise GenerationError(message="API key is not set. Provide GEMINI_API_KEY or --api-key.")
        self._client = client or genai.Client(api_key=api_key)
        self.model = model
        self.edit_model = edit_model
        self.thinking = thinking

    def _config(self) -> types.GenerateContentConfig | None:
        if not self.thinking:
            return None
        return types.GenerateContentConfig(
            thinking_config=types.ThinkingConfig(thinking_budget=THINKING_BUDGET),
        )

    def generate(self, prompt: str) -> str:
        try:
            response = self._client.models.generate_content(
                model=self.model,
                contents=prompt,
                config=self._config(),
            )
        except errors.APIError as e:
            logger.error("generation_failed", model=self.model, error=str(e))
            raise GenerationError from e
        return response.text or ""

    def generate_stream(self, prompt: str) -> Iterator[str]:
        try:
            for chunk in self._client.models.generate_content_stream(
                model=self.model,
                contents=prompt,
                config=self._config(),
            ):
                if chunk.text:
                    yield chunk.text
        except errors.APIError as e:
            logger.error("generation_failed", model=self.model, error=str(e), stream=True)
            raise GenerationError from e

    def edit(self, selected_text: str, instruction: str) -> str:
        try:
            response = self._client.models.generate_content(
                model=self.edit_model,
                contents=build_edit_prompt(selected_text, instruction),
            )
        except errors.APIError as e:
            logger.error("edit_failed", model=self.edit_model, error=str(e))
            raise GenerationError(message=f"Failed to edit text: {e}") from e
        return strip_markdown_fence(response.text or "")

    def start_chat(self, system_instruction: str = CHAT_SYSTEM_INSTRUCTION) -> ChatSession:
        chat = self._client.chats.create(
            model=self.edit_model,
            config=types.GenerateContentConfig(system_instruction=system_instruction),
        )
        return ChatSession(chat)


def stream_readme(client: GenerationClient, context: str, *, repo_label: str = "") -> Iterator[str]:
    """Yield the README for `context` chunk by chunk as the model writes it."""
    prompt = build_readme_prompt(context, repo_label=repo_label)
    logger.info("readme_generation_started", repo=repo_label, prompt_chars=len(prompt), stream=True)
    yield from client.generate_stream(prompt)


def generate_readme(client: GenerationClient, context: str, *, repo_label: str = "", stream: bool = False) -> str:
    """Ask the model for a README built from `context`.

    With `stream` set the answer is requested in chunks and joined; the
    result is the same text either way. Use `stream_readme` to consume the
    chunks as they arrive.
    """
    if stream:
        return "".join(stream_readme(client, context, repo_label=repo_label))
    prompt = build_readme_prompt(context, repo_label=repo_label)
    logger.info("readme_generation_started", repo=repo_label, prompt_chars=len(prompt), stream=False)
    return client.generate(prompt)


def apply_edit(client: GenerationClient, document: str, instruction: str, selection: str | None = None) -> str:
    """Replace `selection` (default: the whole document) by its AI-edited version.

    Only the first occurrence of the selection is replaced.
    """
    target = selection if selection else document
    if target not in document:
        raise GenerationError(message="The selected text was not found in the document.")
    edited = client.edit(target, instruction)
    return document.replace(target, edited, 1)
