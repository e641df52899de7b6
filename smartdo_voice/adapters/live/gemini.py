from typing import Any, AsyncIterator

from google import genai
from google.genai import types
from websockets.exceptions import ConnectionClosedOK

from smartdo_voice.core.logger import get_logger
from smartdo_voice.domain.errors import ChannelOpenFailed
from smartdo_voice.domain.messages import (
    AudioChunkMessage,
    FunctionCall,
    FunctionCallsMessage,
    InboundMessage,
    InterruptedMessage,
    OutboundAudio,
    ToolDeclaration,
    ToolResponse,
)
from smartdo_voice.services import codec

logger = get_logger("adapters.live.gemini")


class GeminiLiveChannel:
    """One Gemini Live session translated into domain messages."""

    def __init__(self, context: Any, session: Any) -> None:
        self._context = context
        self._session = session
        self._closed = False

    async def send_audio(self, audio: OutboundAudio) -> None:
        await self._session.send_realtime_input(
            audio=types.Blob(data=codec.decode(audio.data), mime_type=audio.mime_type)
        )

    async def send_tool_response(self, response: ToolResponse) -> None:
        await self._session.send_tool_response(
            function_responses=[
                types.FunctionResponse(id=response.id, name=response.name, response=response.result)
            ]
        )

    async def messages(self) -> AsyncIterator[InboundMessage]:
        # receive() stops at each turn boundary, so keep re-entering it
        try:
            while not self._closed:
                async for response in self._session.receive():
                    for message in _translate(response):
                        yield message
        except ConnectionClosedOK:
            logger.info("Gemini Live session closed by server")

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self._context.__aexit__(None, None, None)


class GeminiLiveConnector:
    """Opens Gemini Live sessions that speak back and call one declared tool."""

    def __init__(self, *, api_key: str | None, model: str, voice: str = "Kore") -> None:
        self._client = genai.Client(api_key=api_key)
        self.model = model
        self.voice = voice

    async def connect(self, tool: ToolDeclaration, system_instruction: str) -> GeminiLiveChannel:
        config = types.LiveConnectConfig(
            response_modalities=[types.Modality.AUDIO],
            system_instruction=types.Content(parts=[types.Part(text=system_instruction)]),
            # Live API takes tools as raw dicts
            tools=[{"function_declarations": [tool.to_function_declaration()]}],
            speech_config=types.SpeechConfig(
                voice_config=types.VoiceConfig(
                    prebuilt_voice_config=types.PrebuiltVoiceConfig(voice_name=self.voice)
                )
            ),
        )

        context = self._client.aio.live.connect(model=self.model, config=config)
        try:
            session = await context.__aenter__()
        except Exception as exc:
            raise ChannelOpenFailed(f"Could not open Gemini Live session: {exc}") from exc

        logger.info("Gemini Live session open: model=%s tool=%s", self.model, tool.name)
        return GeminiLiveChannel(context, session)


def _translate(response: Any) -> list[InboundMessage]:
    """Split one server message into domain messages, interruption first."""
    messages: list[InboundMessage] = []
    content = response.server_content

    if content is not None and content.interrupted:
        messages.append(InterruptedMessage())

    tool_call = response.tool_call
    if tool_call is not None and tool_call.function_calls:
        messages.append(
            FunctionCallsMessage(
                calls=[
                    FunctionCall(id=fc.id, name=fc.name or "", args=dict(fc.args or {}))
                    for fc in tool_call.function_calls
                ]
            )
        )

    if content is not None and content.model_turn is not None:
        for part in content.model_turn.parts or []:
            blob = part.inline_data
            if blob is None or not blob.data:
                continue
            mime = blob.mime_type or ""
            if mime.startswith("audio/"):
                messages.append(AudioChunkMessage(data=codec.encode(blob.data), mime_type=mime))

    return messages
