"""
Utilities: configuration, logging, and device placement.

Example:
    >>> from modoptim.utils import load_config, setup_logging
    >>>
    >>> config = load_config("configs/sgd.yaml")
    >>> logger = setup_logging(level=config.log_level)
"""

from .config import (
    ModuleOptimConfig,
    load_config,
    save_config
)

from .devices import (
    get_module_device,
    device_scope
)

from .logging import (
    setup_logging,
    ColoredFormatter
)

__all__ = [
    # Config
    'ModuleOptimConfig',
    'load_config',
    'save_config',

    # Devices
    'get_module_device',
    'device_scope',

    # Logging
    'setup_logging',
    'ColoredFormatter',
]
