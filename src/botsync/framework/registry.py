"""Bot registry: name -> factory building a :class:`~botsync.framework.bot.Bot`.

Bots register explicitly when their module is imported::

    @register_bot("acme_licences")
    def acme_licences(**kwargs):
        return Bot("acme_licences", LICENCE, fetcher=AcmeFetcher(), **kwargs)

The CLI imports the modules named with ``--module`` and then looks bots up
here; nothing is resolved from class or file names.

Tags:
    registry, bot-discovery, botsync
"""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from botsync.core.errors import ConfigError
from botsync.core.logging import get_logger

if TYPE_CHECKING:
    from botsync.framework.bot import Bot

logger = get_logger(__name__)

BotFactory = Callable[..., "Bot"]

_registry: dict[str, BotFactory] = {}


def register_bot(name: str) -> Callable[[BotFactory], BotFactory]:
    """Decorator registering a bot factory under *name*."""

    def decorator(factory: BotFactory) -> BotFactory:
        if name in _registry:
            raise ConfigError(f"Bot '{name}' is already registered").with_context(bot=name)
        _registry[name] = factory
        logger.debug("bot_registered", name=name, factory=getattr(factory, "__name__", repr(factory)))
        return factory

    return decorator


def get_bot_factory(name: str) -> BotFactory:
    if name not in _registry:
        available = ", ".join(sorted(_registry)) or "none"
        raise ConfigError(f"Bot '{name}' not found. Available: {available}").with_context(bot=name)
    return _registry[name]


def get_bot(name: str, **kwargs: Any) -> Bot:
    """Build the bot registered under *name*; keyword arguments go to its factory."""
    return get_bot_factory(name)(**kwargs)


def list_bots() -> list[str]:
    """List all registered bot names."""
    return sorted(_registry)


def clear_registry() -> None:
    """Clear registry (for testing)."""
    _registry.clear()


__all__ = ["register_bot", "get_bot", "get_bot_factory", "list_bots", "clear_registry"]
