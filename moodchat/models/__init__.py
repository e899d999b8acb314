from .device import Device
from .chat_session import ChatSession
from .mood_entry import MoodEntry

__all__ = [
    "Device",
    "ChatSession",
    "MoodEntry",
]
