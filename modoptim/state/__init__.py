"""
Per-module optimizer state.

- OptimConfig: hyperparameter mapping with an explicit deep clone
- ModuleKeyResolver: stable module keys that collapse shared parameters
- OptimizerStateStore: module key -> per-parameter-group state
"""

from .config import (
    OptimConfig,
    WEIGHT_DECAY,
    LEARNING_RATE,
    clone_value,
    retype_tensors,
    check_flat_mapping
)

from .params import (
    ParameterGroup,
    iter_modules,
    extract_parameter_groups,
    validate_parameter_groups,
    validate_gradients,
    validate_state_count
)

from .keys import ModuleKeyResolver
from .store import OptimizerStateStore


__all__ = [
    # Config
    'OptimConfig',
    'WEIGHT_DECAY',
    'LEARNING_RATE',
    'clone_value',
    'retype_tensors',
    'check_flat_mapping',

    # Parameters
    'ParameterGroup',
    'iter_modules',
    'extract_parameter_groups',
    'validate_parameter_groups',
    'validate_gradients',

    # Keys and store
    'ModuleKeyResolver',
    'OptimizerStateStore',
]
