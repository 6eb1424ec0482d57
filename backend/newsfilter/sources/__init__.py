"""
Source adapters for newsfilter.
"""
from newsfilter.sources.base import RawArticle, SourceAdapter
from newsfilter.sources.board import BoardAdapter
from newsfilter.sources.feed import FeedAdapter
from newsfilter.sources.page import PageAdapter
from newsfilter.sources.registry import AdapterRegistry, build_adapter_registry

__all__ = [
    "RawArticle",
    "SourceAdapter",
    "FeedAdapter",
    "BoardAdapter",
    "PageAdapter",
    "AdapterRegistry",
    "build_adapter_registry",
]
