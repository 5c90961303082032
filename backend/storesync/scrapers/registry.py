"""Parser registry: maps platform kinds to parser classes."""

import logging
from typing import Type

from storesync.models.enums import PlatformKind
from storesync.schemas.source import SourceSelectors
from storesync.scrapers.base import BaseParser

logger = logging.getLogger(__name__)

# Platform kind -> parser class mapping
_REGISTRY: dict[PlatformKind, Type[BaseParser]] = {}

# Used for any kind without a dedicated parser
FALLBACK_PLATFORM = PlatformKind.WEBSITE


def register_parser(*platforms: PlatformKind):
    """Decorator to register a parser class for one or more platform kinds."""
    def decorator(cls: Type[BaseParser]):
        for platform in platforms:
            _REGISTRY[PlatformKind(platform)] = cls
            logger.debug(f"Registered parser for platform: {platform.value}")
        cls.platform = PlatformKind(platforms[0])
        return cls
    return decorator


def get_parser_class(platform: PlatformKind | str) -> Type[BaseParser] | None:
    """Look up the parser class for a given platform kind."""
    try:
        return _REGISTRY.get(PlatformKind(platform))
    except ValueError:
        return None


def get_parser(platform: PlatformKind | str, selectors: SourceSelectors | None = None) -> BaseParser:
    """Build a fresh parser for one job, falling back to the generic parser."""
    cls = get_parser_class(platform)
    if cls is None:
        logger.warning(f"No parser registered for platform '{platform}', using generic parser")
        cls = _REGISTRY[FALLBACK_PLATFORM]
    return cls(selectors=selectors)


def get_parser_for_url(url: str, selectors: SourceSelectors | None = None) -> BaseParser:
    """Pick a parser by URL shape. Dedicated parsers win over the generic fallback."""
    fallback = _REGISTRY[FALLBACK_PLATFORM]
    for cls in dict.fromkeys(_REGISTRY.values()):
        if cls is fallback:
            continue
        parser = cls(selectors=selectors)
        if parser.can_handle(url):
            return parser
    return fallback(selectors=selectors)


def list_platforms() -> list[PlatformKind]:
    """List all registered platform kinds."""
    return list(_REGISTRY.keys())
