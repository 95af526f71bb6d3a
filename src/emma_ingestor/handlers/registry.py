"""Handler registry - maps source type strings to handler classes."""

from typing import Any, Optional, Type
import logging

from ..errors import CapabilityError
from .base import Handler

logger = logging.getLogger(__name__)


class HandlerRegistry:
    """
    Registry for source handlers.

    Handlers register themselves here and are instantiated by type name.
    """

    _handlers: dict[str, Type[Handler]] = {}

    @classmethod
    def register(cls, handler_type: str, handler_class: Type[Handler]):
        """Register a handler class."""
        cls._handlers[handler_type] = handler_class
        logger.debug(f"Registered handler: {handler_type}")

    @classmethod
    def unregister(cls, handler_type: str):
        """Remove a handler type (no-op if absent)."""
        cls._handlers.pop(handler_type, None)

    @classmethod
    def get(cls, handler_type: str) -> Optional[Type[Handler]]:
        """Get a handler class by type name."""
        return cls._handlers.get(handler_type)

    @classmethod
    def create(cls, handler_type: str, **kwargs: Any) -> Handler:
        """
        Create a handler instance for a source type.

        Raises:
            CapabilityError: unknown type, or a type declared but not implemented
        """
        handler_class = cls._handlers.get(handler_type)
        if handler_class is None:
            raise CapabilityError(f"unknown handler type: {handler_type}")
        if not handler_class.implemented:
            raise CapabilityError(f"{handler_type} not implemented yet")
        return handler_class(**kwargs)

    @classmethod
    def list_types(cls) -> list[str]:
        """List all registered handler types."""
        return list(cls._handlers.keys())

    @classmethod
    def is_registered(cls, handler_type: str) -> bool:
        return handler_type in cls._handlers


def register_handler(handler_type: str):
    """
    Decorator to register a handler class.

    Usage:
        @register_handler("http_fetch")
        class HttpFetchHandler(Handler):
            ...
    """
    def decorator(cls: Type[Handler]):
        cls.handler_type = handler_type
        HandlerRegistry.register(handler_type, cls)
        return cls
    return decorator


def get_handler(handler_type: str) -> Handler:
    """Create a handler for a source type."""
    return HandlerRegistry.create(handler_type)


def list_handlers() -> list[str]:
    """List all registered handler types."""
    return HandlerRegistry.list_types()


def _register_builtin_handlers():
    """Import and register all built-in handlers."""
    from . import http_fetch, web_scraper, ftp_download  # noqa: F401


_register_builtin_handlers()
