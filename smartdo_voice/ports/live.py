from typing import AsyncIterator, Protocol

from smartdo_voice.domain.messages import InboundMessage, OutboundAudio, ToolDeclaration, ToolResponse


class LiveChannelPort(Protocol):
    """An open bidirectional session with the remote tool-calling service."""

    async def send_audio(self, audio: OutboundAudio) -> None:
        ...

    async def send_tool_response(self, response: ToolResponse) -> None:
        ...

    def messages(self) -> AsyncIterator[InboundMessage]:
        """Yield inbound messages in arrival order.

        The iterator ends when the remote side closes the session and raises
        when the connection fails.
        """
        ...

    async def close(self) -> None:
        """Close the session. Safe to call repeatedly."""
        ...


class LiveConnectorPort(Protocol):

    async def connect(self, tool: ToolDeclaration, system_instruction: str) -> LiveChannelPort:
        """Open a session that offers `tool` to the remote model.

        Returns once the remote side has acknowledged the setup.

        Raises:
            ChannelOpenFailed: If the session could not be established.
        """
        ...
