"""
Drawing system exception classes
User errors carry the notice that gets whispered back to whoever triggered them
"""


class DrawingError(Exception):
    """Base exception for all drawing system errors."""


class ConfigurationError(DrawingError):
    """Raised at startup when channel/room configuration is invalid."""


class UserError(DrawingError):
    """A command the invoking user got wrong. Never alters state."""

    notice = "That didn't work."

    def __init__(self, notice=None):
        if notice is not None:
            self.notice = notice
        super().__init__(self.notice)


class AlreadyOpen(UserError):
    notice = "A drawing is already open in this channel."


class NoOpenDrawing(UserError):
    notice = "There is no open drawing in this channel."


class InvalidCount(UserError):
    notice = "The number of winners must be a positive whole number."


class AlreadyEntered(UserError):
    notice = "You are already entered in this drawing."


class NoProfileOnFile(UserError):
    notice = "No profile on file yet. Use !play <your Steam profile link> the first time."


class UnknownWinner(UserError):
    notice = "That user is not one of the current winners."


class PoolExhausted(UserError):
    notice = "No entries left to draw a replacement from."


class TransientError(DrawingError):
    """A collaborator failed. State is left unchanged and nothing is retried."""


class ResolutionFailed(TransientError):
    """Profile lookup failed or returned something we could not parse."""

    notice = "Couldn't look up that Steam profile. Check the link and try again."


class RoomJoinFailed(TransientError):
    """The room transport rejected our join request."""


class PersistenceError(TransientError):
    """A mutating store call failed; the in-memory state was not touched."""
