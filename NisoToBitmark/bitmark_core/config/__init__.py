"""
Configuration Management
========================

Configuration utilities for the bitmark conversion pipeline.
"""

from bitmark_core.config.settings import (
    ConverterConfig,
    StoreConfig,
    PublishingConfig,
    ParserConfig,
    load_config,
    save_config,
    get_default_config,
)

__all__ = [
    "ConverterConfig",
    "StoreConfig",
    "PublishingConfig",
    "ParserConfig",
    "load_config",
    "save_config",
    "get_default_config",
]
