from __future__ import annotations

from typing import Iterable, Optional, Protocol, runtime_checkable

import structlog

from summaly.config import ScrapingOptions
from summaly.models.summary import Summary

logger = structlog.get_logger(__name__)


@runtime_checkable
class SummalyPlugin(Protocol):
    """Site-specific summarizer that takes over URLs it recognises."""

    name: str

    def test(self, url: str) -> bool: ...

    def summarize(self, url: str, options: ScrapingOptions) -> Optional[Summary]: ...


class PluginRegistry:
    def __init__(self, plugins: Iterable[SummalyPlugin] = ()):
        self._plugins: dict[str, SummalyPlugin] = {}
        for plugin in plugins:
            self.register(plugin)

    def register(self, plugin: SummalyPlugin) -> None:
        if plugin.name in self._plugins:
            logger.debug(
                event="plugin_duplicate_ignored",
                operation="plugins.register",
                name=plugin.name,
            )
            return
        self._plugins[plugin.name] = plugin
        logger.debug(event="plugin_registered", operation="plugins.register", name=plugin.name)

    def get(self, name: str) -> Optional[SummalyPlugin]:
        return self._plugins.get(name)

    def match(self, url: str) -> Optional[SummalyPlugin]:
        """First registered plugin whose ``test`` accepts ``url``."""
        for plugin in self._plugins.values():
            if plugin.test(url):
                return plugin
        return None

    def all(self) -> list[SummalyPlugin]:
        return list(self._plugins.values())

    def __len__(self) -> int:
        return len(self._plugins)
