"""
Drawing System Package
Per-channel chat drawings with ticket-weighted winners
"""

__version__ = "1.0.0"

# Export main components
from .draw import ChannelDrawing, DrawingRegistry, select_winners
from .identity import IdentityResolver
from .store import DrawingStore

__all__ = [
    'ChannelDrawing',
    'DrawingRegistry',
    'select_winners',
    'IdentityResolver',
    'DrawingStore',
]
