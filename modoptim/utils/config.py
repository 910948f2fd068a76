"""
Configuration for per-module optimizers.

Example:
    >>> from modoptim.utils import load_config
    >>>
    >>> # Load from YAML
    >>> config = load_config('configs/sgd.yaml')
    >>>
    >>> # Create programmatically
    >>> config = ModuleOptimConfig(
    ...     optimizer='sgd',
    ...     hyperparameters={'lr': 0.1, 'momentum': 0.9, 'weight_decay': 5e-4}
    ... )

A matching YAML file::

    optimizer: sgd
    hyperparameters:
      lr: 0.1
      momentum: 0.9
      weight_decay: 0.0005
    tie_by_storage: false
    log_level: INFO
"""

import yaml
from dataclasses import dataclass, asdict, field
from typing import Any, Dict
from pathlib import Path


def _default_hyperparameters() -> Dict[str, Any]:
    return {'lr': 1e-3, 'weight_decay': 0.0}


@dataclass
class ModuleOptimConfig:
    """
    Per-module optimizer configuration.

    Args:
        optimizer: Update rule name ('sgd', 'adam', 'adamw', 'rmsprop', 'adagrad')
        hyperparameters: Template cloned into every parameter group's state
        tie_by_storage: Treat modules whose weight and bias share storage as shared
        log_level: Level for ``setup_logging``
    """

    optimizer: str = 'sgd'
    hyperparameters: Dict[str, Any] = field(default_factory=_default_hyperparameters)
    tie_by_storage: bool = False
    log_level: str = 'INFO'

    def __post_init__(self):
        """Validate configuration."""
        from ..training.updaters import UPDATER_REGISTRY

        self.optimizer = self.optimizer.lower().strip()
        if self.optimizer not in UPDATER_REGISTRY:
            available = ', '.join(UPDATER_REGISTRY.keys())
            raise ValueError(f"Unknown optimizer: {self.optimizer}. Available: {available}")
        if not isinstance(self.hyperparameters, dict):
            raise ValueError(
                f"hyperparameters must be a dict, got {type(self.hyperparameters).__name__}"
            )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, config_dict: Dict[str, Any]) -> 'ModuleOptimConfig':
        """Create from dictionary, ignoring unknown keys."""
        known = {'optimizer', 'hyperparameters', 'tie_by_storage', 'log_level'}
        return cls(**{k: v for k, v in config_dict.items() if k in known})


# ============================================================================
# YAML UTILITIES
# ============================================================================

def load_config(config_path: str) -> ModuleOptimConfig:
    """
    Load configuration from YAML file.

    Args:
        config_path: Path to YAML config file

    Returns:
        ModuleOptimConfig instance
    """
    with open(config_path, 'r') as f:
        config_dict = yaml.safe_load(f)

    if not isinstance(config_dict, dict):
        raise ValueError(f"Config file {config_path} must contain a mapping")

    return ModuleOptimConfig.from_dict(config_dict)


def save_config(config: ModuleOptimConfig, config_path: str):
    """
    Save configuration to YAML file.

    Args:
        config: ModuleOptimConfig instance
        config_path: Path to save YAML file
    """
    path = Path(config_path)
    path.parent.mkdir(parents=True, exist_ok=True)

    with open(path, 'w') as f:
        yaml.safe_dump(config.to_dict(), f, default_flow_style=False, sort_keys=False)
