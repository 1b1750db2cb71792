"""Card suppliers for wordcore."""

from .base import ContentSource
from .notion import NotionClient, NotionContentSource, NotionProgressSink
from .yaml_deck import YamlDeckSource

__all__ = [
    "ContentSource",
    "NotionClient",
    "NotionContentSource",
    "NotionProgressSink",
    "YamlDeckSource",
]
