"""Messages exchanged with the remote live tool-calling service.

Inbound traffic is one of three shapes, processed strictly in arrival order.
Audio travels as base64 text on both directions of the channel.
"""

from dataclasses import dataclass, field
from typing import Any, Union


@dataclass(frozen=True, slots=True)
class FunctionCall:
    id: str | None
    name: str
    args: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class FunctionCallsMessage:
    calls: list[FunctionCall]


@dataclass(frozen=True, slots=True)
class AudioChunkMessage:
    data: str
    mime_type: str = "audio/pcm;rate=24000"


@dataclass(frozen=True, slots=True)
class InterruptedMessage:
    pass


InboundMessage = Union[FunctionCallsMessage, AudioChunkMessage, InterruptedMessage]


@dataclass(frozen=True, slots=True)
class OutboundAudio:
    data: str
    mime_type: str


@dataclass(frozen=True, slots=True)
class ToolResponse:
    id: str | None
    name: str
    result: dict[str, Any]


@dataclass(frozen=True, slots=True)
class ToolDeclaration:
    """A callable function offered to the remote model."""

    name: str
    description: str
    parameters: dict[str, Any]

    def to_function_declaration(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "parameters": self.parameters,
        }
