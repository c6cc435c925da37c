"""
Configuration management for omsearch.

Provides dataclasses for configuration and utilities
for loading settings from YAML files.
"""

import math
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional
import yaml

from ..utils.logging import setup_logger


def _default_numeric_sentinels() -> Dict[str, float]:
    # Keys are compared lower-cased
    return {
        "inf": math.inf,
        "+inf": math.inf,
        "infinity": math.inf,
        "+infinity": math.inf,
        "-inf": -math.inf,
        "-infinity": -math.inf,
        "nan": math.nan,
        "-nan": math.nan,
    }


@dataclass
class Settings:
    """
    Main settings container for omsearch.
    
    Attributes:
        dialect: Query dialect sent with every search
        default_page_size: Page size used by ``return_all``
        vector_param_name: PARAMS key holding the KNN query vector
        score_alias_format: Format for the KNN distance alias
            (``{field}`` is replaced by the vector field's store name)
        numeric_sentinels: Reply tokens mapped to non-finite floats
        warn_on_unsortable: Log a warning when sorting by a field
            that is not declared sortable
        log_level: Logging level
    """
    dialect: int = 2
    default_page_size: int = 10
    vector_param_name: str = "query_vector"
    score_alias_format: str = "__{field}_score"
    numeric_sentinels: Dict[str, float] = field(default_factory=_default_numeric_sentinels)
    warn_on_unsortable: bool = True
    log_level: str = "WARNING"
    
    def __post_init__(self):
        self.numeric_sentinels = {
            str(k).lower(): float(v) for k, v in self.numeric_sentinels.items()
        }
    
    @classmethod
    def from_dict(cls, data: dict) -> "Settings":
        """Create Settings from dictionary."""
        data = dict(data)
        sentinels = data.pop("numeric_sentinels", None)
        settings = cls(**data)
        if sentinels:
            merged = dict(settings.numeric_sentinels)
            merged.update({str(k).lower(): float(v) for k, v in sentinels.items()})
            settings.numeric_sentinels = merged
        return settings
    
    def to_dict(self) -> dict:
        """Convert Settings to dictionary."""
        from dataclasses import asdict
        return asdict(self)


def get_default_config_path() -> Path:
    """Get path to default configuration file."""
    # Check for config in current directory
    local_config = Path("./config/omsearch.yaml")
    if local_config.exists():
        return local_config
    
    # Check for config relative to this file
    module_config = Path(__file__).parent / "omsearch.yaml"
    if module_config.exists():
        return module_config
    
    # Check environment variable
    env_config = os.environ.get("OMSEARCH_CONFIG")
    if env_config:
        return Path(env_config)
    
    return module_config


def load_config(config_path: Optional[str] = None) -> Settings:
    """
    Load configuration from YAML file.
    
    The package logger is set to the loaded ``log_level``.
    
    Args:
        config_path: Path to config file. If None, uses default.
        
    Returns:
        Settings object with loaded configuration
        
    Example:
        >>> settings = load_config()
        >>> settings = load_config("./omsearch.yaml")
    """
    if config_path is None:
        path = get_default_config_path()
    else:
        path = Path(config_path)
    
    data = None
    if path.exists():
        with open(path, "r") as f:
            data = yaml.safe_load(f)
    
    settings = Settings.from_dict(data) if data else Settings()
    setup_logger("omsearch", settings.log_level)
    return settings
