"""Source handlers - pluggable fetch/extract behavior keyed by source type."""

from .base import Handler
from .registry import HandlerRegistry, get_handler, list_handlers, register_handler

__all__ = [
    "Handler",
    "HandlerRegistry",
    "get_handler",
    "list_handlers",
    "register_handler",
]
