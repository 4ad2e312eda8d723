"""
Error handling helpers for chat command handlers
Reduces repetitive try/except patterns and turns failures into whispered notices
"""

from functools import wraps
import logging

from drawing_system.exceptions import TransientError, UserError

logger = logging.getLogger(__name__)

TRY_AGAIN_NOTICE = "Something went wrong on our side. Please try again in a moment."
UNEXPECTED_NOTICE = "Unexpected error while running that command."


def command_error_handler(func):
    """
    Decorator for dispatcher handlers taking (self, invocation, ...)

    User errors are whispered back as-is, collaborator failures get a
    "try again" notice, anything else is logged with a traceback.
    The handler's object must expose `chat` with an async whisper(identity, text).

    Usage:
        @command_error_handler
        async def handle_quit(self, invocation):
            ...
    """
    @wraps(func)
    async def wrapper(self, invocation, *args, **kwargs):
        try:
            return await func(self, invocation, *args, **kwargs)
        except UserError as e:
            logger.info(f"{func.__name__} rejected for {invocation.identity} in {invocation.channel}: {e.notice}")
            await self.chat.whisper(invocation.identity, f"❌ {e.notice}")
        except TransientError as e:
            logger.warning(f"Transient error in {func.__name__} for {invocation.identity}: {e}")
            notice = getattr(e, "notice", None) or TRY_AGAIN_NOTICE
            await self.chat.whisper(invocation.identity, f"⚠️ {notice}")
        except Exception as e:
            logger.error(f"Unexpected error in {func.__name__}: {e}", exc_info=True)
            await self.chat.whisper(invocation.identity, f"❌ {UNEXPECTED_NOTICE}")
        return None
    return wrapper


def safe_int(value, default=None):
    """
    Safely convert value to integer with fallback

    Args:
        value: Value to convert
        default: Default value if conversion fails

    Returns:
        int: Converted value or default
    """
    try:
        return int(value)
    except (ValueError, TypeError):
        return default

