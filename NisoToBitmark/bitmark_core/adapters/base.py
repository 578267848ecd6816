"""
Collaborator Interfaces
=======================

Abstract base classes for the services the markup generator delegates to:
rendering complex tables to images, converting math content to inline
markup and publishing local assets under a public URL.

Extend these classes to plug in a headless browser, a remote upload
service or a different math engine.
"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Union
import logging

logger = logging.getLogger(__name__)


class ImageRenderer(ABC):
    """
    Queue of HTML fragments to be rendered into PNG images.

    ``render`` only queues the request; the markup generator embeds the
    image URL derived from the filename right away and calls ``flush``
    once the whole tree walk has completed.

    Example:
        class BrowserRenderer(ImageRenderer):
            def render(self, html: str, filename: str) -> None:
                self.queue.append((html, filename))

            def flush(self) -> int:
                for html, filename in self.queue:
                    ...  # screenshot into <filename>.png
                return len(self.queue)
    """

    @abstractmethod
    def render(self, html: str, filename: str) -> None:
        """
        Queue one HTML fragment.

        Args:
            html: Table fragment (no surrounding document)
            filename: Target filename without extension
        """
        pass

    @abstractmethod
    def flush(self) -> int:
        """
        Process all queued requests sequentially.

        Returns:
            Number of requests processed
        """
        pass


class FormulaConverter(ABC):
    """Synchronous converter from a MathML fragment to inline markup."""

    @abstractmethod
    def convert(self, mathml: str) -> str:
        pass


class AssetPublisher(ABC):
    """Makes a local file reachable under a public URL."""

    @abstractmethod
    def publish(self, local_path: Union[str, Path], public_filename: str) -> str:
        """
        Publish a local file.

        Args:
            local_path: File to publish
            public_filename: Name under which the file is reachable

        Returns:
            Public URL of the asset
        """
        pass
