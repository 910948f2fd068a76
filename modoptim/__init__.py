"""
modoptim: per-module optimizer state for composable models.

Applies one update rule independently to every weight/bias pair of a model
tree, each with its own cloned hyperparameters, while keeping a single state
for modules that share parameters.
"""

__version__ = "0.1.0"

from .errors import ContractViolation, NotRegistered, InvalidConfig

from .state import (
    OptimConfig,
    ParameterGroup,
    ModuleKeyResolver,
    OptimizerStateStore,
    extract_parameter_groups,
    iter_modules
)

from .training import (
    StepDriver,
    TorchOptimUpdater,
    ModuleOptimizer,
    default_evaluator,
    autograd_evaluator,
    create_updater,
    create_module_optimizer,
    create_module_optimizer_from_config
)

from .utils import (
    ModuleOptimConfig,
    load_config,
    save_config,
    setup_logging,
    device_scope
)

__all__ = [
    # Errors
    'ContractViolation',
    'NotRegistered',
    'InvalidConfig',

    # State
    'OptimConfig',
    'ParameterGroup',
    'ModuleKeyResolver',
    'OptimizerStateStore',
    'extract_parameter_groups',
    'iter_modules',

    # Training
    'StepDriver',
    'TorchOptimUpdater',
    'ModuleOptimizer',
    'default_evaluator',
    'autograd_evaluator',
    'create_updater',
    'create_module_optimizer',
    'create_module_optimizer_from_config',

    # Utils
    'ModuleOptimConfig',
    'load_config',
    'save_config',
    'setup_logging',
    'device_scope',
]
