from fastapi import APIRouter, Depends, HTTPException, status

from smartdo_voice.api.response_models import VoiceStatusResponse
from smartdo_voice.core.di import get_voice_session
from smartdo_voice.domain.errors import VoiceSessionError
from smartdo_voice.services.session import StreamingSession


router = APIRouter(prefix="/voice", tags=["voice"])


def _status(session: StreamingSession) -> VoiceStatusResponse:
    return VoiceStatusResponse.from_status(active=session.is_active, status=session.status())


@router.post("/start", response_model=VoiceStatusResponse)
async def start_voice(
    session: StreamingSession = Depends(get_voice_session),
) -> VoiceStatusResponse:
    """Open a live voice session on the local microphone and speaker.

    Spoken requests such as "add an urgent report for Monday at 2 PM" are
    turned into tasks while the session is open.

    Raises:
        HTTPException 409: If a voice session is already connecting or open.
        HTTPException 503: If the devices or the live service are unavailable.
    """
    try:
        started = await session.start()
    except VoiceSessionError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    if not started:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Voice session already active",
        )
    return _status(session)


@router.post("/stop", response_model=VoiceStatusResponse)
async def stop_voice(
    session: StreamingSession = Depends(get_voice_session),
) -> VoiceStatusResponse:
    """Stop the voice session. Stopping an idle session is not an error."""
    await session.stop()
    return _status(session)


@router.get("/status", response_model=VoiceStatusResponse)
def get_voice_status(
    session: StreamingSession = Depends(get_voice_session),
) -> VoiceStatusResponse:
    return _status(session)
