"""
Configuration Settings
======================

Configuration dataclasses for the bitmark conversion pipeline.
"""

from dataclasses import dataclass, field, asdict
from pathlib import Path
from typing import Optional, Dict, Any
import json
import logging

import yaml

logger = logging.getLogger(__name__)

DEFAULT_RESSOURCE_BASE_URL = "https://electrosuisse.getmorebrain.com/x-publisher/images/"


@dataclass
class StoreConfig:
    """Cross-reference store configuration."""

    mapping_dir: str = "mappings"
    lock_timeout: float = 5.0  # seconds
    stale_lock_age: float = 30.0  # seconds
    stale_lock_age_on_open: float = 300.0  # seconds


@dataclass
class PublishingConfig:
    """Asset publishing and book header configuration."""

    ressource_base_url: str = DEFAULT_RESSOURCE_BASE_URL
    public_images_dir: str = "public/images"
    publisher: str = "electrosuisse"
    theme: str = "nin"
    cover_color: str = "#fa6800"


@dataclass
class ParserConfig:
    """Tree builder configuration."""

    doctype: str = "nin"  # nin, sng, no_sub-part
    chunk_size: int = 64 * 1024
    csv_dir: str = ""  # Empty disables the anchor CSV side output


@dataclass
class ConverterConfig:
    """
    Complete converter configuration.

    Contains all configuration for a conversion run:
    - Cross-reference store location and lock timing
    - Publishing of images and book header values
    - Tree builder parameters

    Example:
        config = ConverterConfig()
        config.store.mapping_dir = "/data/mappings"
        config.lang = "fr"
        save_config(config, Path("converter.yaml"))
    """

    store: StoreConfig = field(default_factory=StoreConfig)
    publishing: PublishingConfig = field(default_factory=PublishingConfig)
    parser: ParserConfig = field(default_factory=ParserConfig)

    # General settings
    lang: str = "de"
    book_registry: str = ""
    log_level: str = "INFO"

    # private-char description -> symbol available in the target font
    private_chars: Dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            'store': asdict(self.store),
            'publishing': asdict(self.publishing),
            'parser': asdict(self.parser),
            'lang': self.lang,
            'book_registry': self.book_registry,
            'log_level': self.log_level,
            'private_chars': dict(self.private_chars),
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'ConverterConfig':
        """Create from dictionary."""
        config = cls()

        if 'store' in data:
            config.store = StoreConfig(**data['store'])
        if 'publishing' in data:
            config.publishing = PublishingConfig(**data['publishing'])
        if 'parser' in data:
            config.parser = ParserConfig(**data['parser'])

        if 'lang' in data:
            config.lang = data['lang']
        if 'book_registry' in data:
            config.book_registry = data['book_registry']
        if 'log_level' in data:
            config.log_level = data['log_level']
        if 'private_chars' in data:
            config.private_chars = dict(data['private_chars'] or {})

        return config


def load_config(config_path: Path) -> ConverterConfig:
    """
    Load configuration from file.

    Supports JSON and YAML formats based on file extension.

    Args:
        config_path: Path to config file

    Returns:
        ConverterConfig object

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValueError: If file format is not supported
    """
    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    suffix = config_path.suffix.lower()

    with open(config_path, 'r', encoding='utf-8') as f:
        if suffix in ['.yaml', '.yml']:
            data = yaml.safe_load(f)
        elif suffix == '.json':
            data = json.load(f)
        else:
            raise ValueError(f"Unsupported config format: {suffix}")

    logger.info(f"Loaded configuration from {config_path}")
    return ConverterConfig.from_dict(data or {})


def save_config(config: ConverterConfig, config_path: Path) -> None:
    """
    Save configuration to file.

    Args:
        config: ConverterConfig to save
        config_path: Path to save config file

    Raises:
        ValueError: If file format is not supported
    """
    config_path = Path(config_path)
    suffix = config_path.suffix.lower()
    data = config.to_dict()

    config_path.parent.mkdir(parents=True, exist_ok=True)

    with open(config_path, 'w', encoding='utf-8') as f:
        if suffix in ['.yaml', '.yml']:
            yaml.dump(data, f, default_flow_style=False, sort_keys=False, allow_unicode=True)
        elif suffix == '.json':
            json.dump(data, f, indent=2, ensure_ascii=False)
        else:
            raise ValueError(f"Unsupported config format: {suffix}")

    logger.info(f"Saved configuration to {config_path}")


def get_default_config() -> ConverterConfig:
    """Get default configuration."""
    return ConverterConfig()
