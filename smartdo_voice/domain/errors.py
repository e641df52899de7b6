class SmartDoError(Exception):
    """Base class for errors raised by smartdo_voice."""


class VoiceSessionError(SmartDoError, RuntimeError):
    """A live voice session could not be started or was lost."""


class DeviceUnavailable(VoiceSessionError):
    """Microphone or speaker could not be acquired (absent or permission denied)."""


class ChannelOpenFailed(VoiceSessionError):
    """The remote live channel refused or failed the connection."""


class RemoteError(VoiceSessionError):
    """The remote live channel failed after the session was established."""


class MalformedToolArguments(SmartDoError, ValueError):
    """A tool call arrived without the arguments needed to act on it."""


class CodecError(SmartDoError, ValueError):
    """Transport text is not valid encoded audio."""


class TaskNotFound(SmartDoError, KeyError):
    """No task is stored under the requested id."""

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else "Task not found"
