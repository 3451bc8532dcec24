# models/__init__.py
from .base import BaseModel
from .attendee import Attendee

__all__ = [
    'BaseModel',
    'Attendee'
]
