"""Training utilities: evaluators, update rules, and the step driver."""

from .base import (
    Evaluator,
    Updater,
    default_evaluator,
    autograd_evaluator
)

from .driver import StepDriver

from .updaters import (
    TorchOptimUpdater,
    create_updater,
    UPDATER_REGISTRY
)

from .factory import (
    ModuleOptimizer,
    create_module_optimizer,
    create_module_optimizer_from_config
)


__all__ = [
    # Capabilities
    'Evaluator',
    'Updater',
    'default_evaluator',
    'autograd_evaluator',

    # Driver
    'StepDriver',

    # Updaters
    'TorchOptimUpdater',
    'create_updater',
    'UPDATER_REGISTRY',

    # Facade
    'ModuleOptimizer',
    'create_module_optimizer',
    'create_module_optimizer_from_config',
]
