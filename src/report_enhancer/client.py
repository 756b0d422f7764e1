"""Generation backend boundary.

The pipeline only depends on :class:`GenerationClient`: an object with an
``async generate(request) -> str`` method. :class:`AutogenGenerationClient`
is the production implementation, built on AG2 agents and the role-based
``llm_config`` from :mod:`report_enhancer.config`.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Protocol, runtime_checkable

import autogen

from .config import build_role_llm_config
from .models import FileReference, GenerationRequest, ProjectConfig, TextPart

logger = logging.getLogger(__name__)


class GenerationError(RuntimeError):
    """Raised when the backend answers with nothing usable."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


@runtime_checkable
class GenerationClient(Protocol):
    """Anything that turns a :class:`GenerationRequest` into generated text."""

    async def generate(self, request: GenerationRequest) -> str: ...


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def render_parts(parts: list[TextPart | FileReference]) -> str:
    """Flatten content parts into one user message.

    File references are opaque to this package, so they are passed on as
    labelled URIs for the backend to resolve.
    """
    chunks: list[str] = []
    for part in parts:
        if isinstance(part, TextPart):
            chunks.append(part.text)
        else:
            label = part.display_name or part.uri
            chunks.append(f"[Attached file: {label} | {part.mime_type} | {part.uri}]")
    return "\n".join(chunks)


def _strip_fences(text: str) -> str:
    text = re.sub(r"^```[a-zA-Z]*\n?", "", text.strip())
    text = re.sub(r"\n?```\s*$", "", text)
    return text.strip()


def extract_text(response: Any) -> str:
    """Extract the reply string from an AG2 chat response."""
    if hasattr(response, "summary") and response.summary:
        text = str(response.summary)
    elif hasattr(response, "chat_history") and response.chat_history:
        last = response.chat_history[-1]
        text = last.get("content", "") if isinstance(last, dict) else str(last)
    else:
        text = str(response or "")
    return _strip_fences(text)


# ---------------------------------------------------------------------------
# AG2 implementation
# ---------------------------------------------------------------------------

_AGENT_NAMES = {
    "identifier": "TaskIdentifier",
    "subagent": "EnhancementSubAgent",
}


class AutogenGenerationClient:
    """Generation client that runs one single-turn AG2 chat per request."""

    def __init__(self, config: ProjectConfig) -> None:
        self.config = config

    def _make_agents(self, request: GenerationRequest) -> tuple[autogen.AssistantAgent, autogen.UserProxyAgent]:
        llm_config = build_role_llm_config(
            request.role,
            self.config,
            model=request.model,
            reasoning_effort=request.reasoning_effort,
        )
        assistant = autogen.AssistantAgent(
            name=_AGENT_NAMES.get(request.role, "Generator"),
            system_message=request.system_instruction or "You are a helpful assistant.",
            llm_config=llm_config,
        )
        proxy = autogen.UserProxyAgent(
            name="Orchestrator",
            human_input_mode="NEVER",
            code_execution_config=False,
        )
        return assistant, proxy

    async def generate(self, request: GenerationRequest) -> str:
        message = render_parts(list(request.parts))
        if request.grounding_store:
            logger.debug("Grounding store %r offered to %s", request.grounding_store, request.role)
            message += f"\n\n[Grounding store available: {request.grounding_store}]"

        assistant, proxy = self._make_agents(request)
        response = await proxy.a_initiate_chat(
            assistant,
            message=message,
            max_turns=1,
            silent=True,
        )
        text = extract_text(response)
        if not text:
            raise GenerationError(f"Empty response from backend for role {request.role!r}")
        return text
