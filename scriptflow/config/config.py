"""Manages application configuration using dataclasses and YAML loading"""
from __future__ import annotations
import yaml

from loguru import logger
from typing import Dict, Any, Optional, List, ClassVar
from pathlib import Path
from dataclasses import dataclass, field, asdict
from functools import lru_cache

__author__ = "Vladimir Azarov"
__email__ = "azarov.swe@gmail.com"
__version__ = "1.0.0"
__license__ = "MIT"

logger.remove()

@dataclass(frozen=True)
class DeveloperOptions:
    """Developer options configuration"""
    debug: bool = False
    logging_levels: List[str] = field(
        default_factory=lambda: ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
    )
    flow_graph_builder_log: bool = False
    resolver_log: bool = False
    operations_log: bool = False
    cache_log: bool = False
    show_rich: bool = False


@dataclass(frozen=True)
class LayoutConfig:
    """Grid auto-layout configuration"""
    card_width: int = 280
    card_height: int = 150
    horizontal_gap: int = 40
    vertical_gap: int = 40
    # Caps the number of grid columns; None means ceil(sqrt(node count))
    max_columns: Optional[int] = None
    origin_x: int = 0
    origin_y: int = 0

    def __post_init__(self):
        if self.max_columns is not None and self.max_columns < 1:
            logger.warning(f"Ignoring invalid max_columns={self.max_columns}")
            object.__setattr__(self, "max_columns", None)

    @property
    def cell_width(self) -> int:
        return self.card_width + self.horizontal_gap

    @property
    def cell_height(self) -> int:
        return self.card_height + self.vertical_gap


@dataclass(frozen=True)
class CacheConfig:
    """Content cache configuration"""
    max_entries: int = 50
    max_memory_bytes: int = 50 * 1024 * 1024
    hash_digest_size: int = 8


@dataclass(frozen=True)
class NodeDefaultsConfig:
    """Default data for nodes created in the graph view"""
    dialogue_text: str = "New dialogue"
    choice_texts: List[str] = field(default_factory=lambda: ["Choice 1", "Choice 2"])
    condition: str = "True"
    new_label_name: str = "new_label"


@dataclass(frozen=True)
class PreviewConfig:
    """Scene preview configuration"""
    max_lines: int = 3
    max_text_length: int = 30
    narrator_name: str = "narrator"


@dataclass
class AppConfig:
    """
    Main application configuration

    This class centralizes all configuration settings and handles
    loading from external files
    """
    developer_options: DeveloperOptions = field(default_factory=DeveloperOptions)
    layout: LayoutConfig = field(default_factory=LayoutConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    node_defaults: NodeDefaultsConfig = field(default_factory=NodeDefaultsConfig)
    preview: PreviewConfig = field(default_factory=PreviewConfig)

    DEFAULT_CONFIG_PATHS: ClassVar[List[str]] = [
        "config.yaml",
        "scriptflow/config.yaml",
        "scriptflow/config/config.yaml",
        "../config.yaml",
    ]

    def __post_init__(self) -> None:
        """Initialize configuration after instance creation"""
        self._config_path: Optional[Path] = None
        self._load_config()

    def _find_file(self, potential_paths: List[str]) -> Optional[str]:
        """Find the first existing file from a list of potential paths"""
        module_dir = Path(__file__).parent
        all_paths = [
            Path(path) for path in potential_paths
        ] + [
            module_dir / f"../../{path}" for path in potential_paths
        ]

        for path in all_paths:
            if path.exists():
                return str(path)
        return None

    def _load_config(self, config_path: Optional[str] = None) -> None:
        """Load configuration from YAML file"""
        config_data: Dict[str, Any] = {}
        try:
            if config_path:
                self._config_path = Path(config_path)
            else:
                found_path = self._find_file(self.DEFAULT_CONFIG_PATHS)
                self._config_path = Path(found_path) if found_path else None

            if self._config_path and self._config_path.exists():
                with open(self._config_path, "r", encoding='utf-8') as f:
                    loaded_config_data = yaml.safe_load(f)
                if not loaded_config_data:
                    logger.warning("Empty configuration file, using defaults")
                else:
                    config_data = loaded_config_data
            else:
                logger.warning("Configuration file not found, using defaults")

        except yaml.YAMLError as e:
            logger.error(f"Failed to parse configuration: {str(e)}. Using default values.")
            config_data = {}

        self._update_from_dict(config_data)
        logger.info(f"Loaded config_data from YAML: {config_data}")

    def _update_from_dict(self, config_data: Dict[str, Any]) -> None:
        """Update configuration using values from loaded dictionary"""
        self._update_nested_config('developer_options', DeveloperOptions, config_data)
        self._update_nested_config('layout', LayoutConfig, config_data)
        self._update_nested_config('cache', CacheConfig, config_data)
        self._update_nested_config('node_defaults', NodeDefaultsConfig, config_data)
        self._update_nested_config('preview', PreviewConfig, config_data)

    def apply_overrides(self, overrides: Dict[str, Any]) -> None:
        """
        Applies CLI overrides to the configuration
        """
        if not overrides:
            return

        logger.info("Applying CLI overrides...")
        updated = False

        if overrides.get('max_columns') is not None:
            new_columns = overrides['max_columns']
            if self.layout.max_columns != new_columns:
                self.layout = LayoutConfig(**{**asdict(self.layout), 'max_columns': new_columns})
                logger.info(f"CLI Override: Set layout.max_columns to {self.layout.max_columns}")
                updated = True
            else:
                logger.debug(f"CLI Override: max_columns already set to {new_columns}, no change.")

        if overrides.get('debug') is not None:
            new_debug = bool(overrides['debug'])
            if self.developer_options.debug != new_debug:
                object.__setattr__(self.developer_options, 'debug', new_debug)
                logger.info(f"CLI Override: Set debug to {new_debug}")
                updated = True

        if updated:
            logger.info("CLI overrides applied successfully.")
        else:
            logger.info("No applicable CLI overrides found or values matched current config.")

    def _update_nested_config(self, key: str, config_class: type, config_data: Dict[str, Any]) -> None:
        """Update a nested configuration by creating a new instance with updated values"""
        current_values = asdict(config_class())
        if key in config_data and isinstance(config_data[key], dict):
            unknown = set(config_data[key]) - set(current_values)
            if unknown:
                logger.warning(f"Ignoring unknown {key} options: {sorted(unknown)}")
            current_values.update({k: v for k, v in config_data[key].items() if k in current_values})
        logger.debug(f"Creating {config_class.__name__} instance with values: {current_values}")
        setattr(self, key, config_class(**current_values))

    def reload(self, config_path: Optional[str] = None) -> 'AppConfig':
        """Reload configuration from file"""
        self._load_config(config_path)
        return self

@lru_cache(maxsize=1)
def get_config() -> AppConfig:
    """Get the singleton AppConfig instance"""
    instance = AppConfig()
    return instance

config = get_config()
