"""The LLM gateway capability shared by every provider backend."""

from __future__ import annotations

from collections.abc import AsyncIterator, Sequence
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

from ..models.research import ChatMessage, ToolCall
from ..types import ToolName


@dataclass(frozen=True)
class ToolDefinition:
    """Provider-neutral declaration of a callable tool."""

    name: ToolName
    description: str
    parameters: dict[str, Any]


@dataclass
class StreamDelta:
    """One increment of a streamed completion.

    Text fragments arrive as they are generated; tool calls arrive complete,
    after the provider has finished streaming their arguments.
    """

    text: str = ""
    tool_calls: list[ToolCall] = field(default_factory=list)


@runtime_checkable
class LLMGateway(Protocol):
    """Text-completion capability backed by one provider and one model."""

    provider: str
    model: str

    async def complete_text(self, prompt: str, *, json_mode: bool = False) -> str:
        """Return the full completion for a single-turn *prompt*."""
        ...

    def stream_text(
        self,
        messages: Sequence[ChatMessage],
        *,
        tools: Sequence[ToolDefinition] | None = None,
    ) -> AsyncIterator[StreamDelta]:
        """Stream a completion over *messages*. Finite and not restartable."""
        ...
