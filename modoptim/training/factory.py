"""
Per-module optimizer facade and factory functions.

Example:
    >>> from modoptim.training import create_module_optimizer
    >>>
    >>> optimizer = create_module_optimizer('sgd', lr=0.1, momentum=0.9, weight_decay=5e-4)
    >>> optimizer.add_model(model)
    >>> for inputs, targets in batches:
    ...     loss, output = optimizer.step(model, inputs, targets, criterion)
    >>>
    >>> # Learning-rate schedule without rebuilding state
    >>> optimizer.set_hyperparameters({'lr': 0.01})
"""

import logging
from collections.abc import Mapping
from typing import Any, Dict, List, Optional, Union

import torch

from ..state.config import LEARNING_RATE
from ..state.keys import ModuleKeyResolver
from ..state.store import OptimizerStateStore
from ..utils.config import ModuleOptimConfig
from ..utils.logging import setup_logging
from .base import Evaluator, Updater
from .driver import StepDriver
from .updaters import create_updater

logger = logging.getLogger(__name__)


class ModuleOptimizer:
    """
    Optimizer keeping separate state for every submodule's weight and bias.

    Bundles an ``OptimizerStateStore`` with a ``StepDriver`` and an update
    rule.

    Args:
        template: Hyperparameters cloned into every parameter group's state
        updater: Update rule, or the name of a ``torch.optim`` optimizer
        evaluator: Evaluation strategy (``default_evaluator`` if None)
        tie_by_storage: Treat modules whose weight and bias share storage as shared
    """

    def __init__(
        self,
        template: Mapping,
        updater: Union[str, Updater] = 'sgd',
        evaluator: Optional[Evaluator] = None,
        tie_by_storage: bool = False
    ):
        self.store = OptimizerStateStore(
            template,
            resolver=ModuleKeyResolver(tie_by_storage=tie_by_storage)
        )
        self.updater = create_updater(updater) if isinstance(updater, str) else updater
        self.driver = StepDriver(self.store, evaluator)

    def add_model(self, model) -> int:
        """Register every module of ``model``; see ``OptimizerStateStore.add_model``."""
        return self.store.add_model(model)

    def tie(self, module, target) -> int:
        """Declare that ``module`` shares its parameters with ``target``."""
        return self.store.tie(module, target)

    def step(self, model, inputs, targets, loss_fn, eval_fn: Optional[Evaluator] = None):
        """Run one forward/backward/update cycle; returns ``(loss, output)``."""
        return self.driver.step(model, self.updater, inputs, targets, loss_fn, eval_fn=eval_fn)

    def set_hyperparameters(self, new_values: Mapping) -> None:
        self.store.set_hyperparameters(new_values)

    def retype(self, target: Union[torch.dtype, torch.device, str]) -> 'ModuleOptimizer':
        self.store.retype(target)
        return self

    def export(self) -> Dict[str, Any]:
        return self.store.export()

    def state_dict(self) -> Dict[str, Any]:
        return self.store.export()

    def load_state_dict(self, state_dict: Mapping) -> None:
        self.store.load_state_dict(state_dict)

    def get_last_lr(self) -> List[float]:
        """Learning rate of every stored parameter-group state."""
        return [
            state.get(LEARNING_RATE)
            for _, states in self.store.items()
            for state in states
        ]

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.updater!r}, modules={len(self.store)})"


# ============================================================================
# FACTORY FUNCTIONS
# ============================================================================

def create_module_optimizer(
    name: str = 'sgd',
    evaluator: Optional[Evaluator] = None,
    tie_by_storage: bool = False,
    **hyperparameters
) -> ModuleOptimizer:
    """
    Create a per-module optimizer by name.

    Args:
        name: Optimizer name ('sgd', 'adam', 'adamw', 'rmsprop', 'adagrad')
        evaluator: Evaluation strategy
        tie_by_storage: Treat modules whose weight and bias share storage as shared
        **hyperparameters: Template hyperparameters (lr, momentum, weight_decay ...)

    Example:
        >>> optimizer = create_module_optimizer('adam', lr=1e-3, weight_decay=0.01)
    """
    return ModuleOptimizer(
        hyperparameters,
        updater=create_updater(name),
        evaluator=evaluator,
        tie_by_storage=tie_by_storage
    )


def create_module_optimizer_from_config(
    config: Union[ModuleOptimConfig, Dict[str, Any]],
    evaluator: Optional[Evaluator] = None,
    configure_logging: bool = True
) -> ModuleOptimizer:
    """
    Create a per-module optimizer from a config.

    Args:
        config: ``ModuleOptimConfig`` or a dict accepted by ``ModuleOptimConfig.from_dict``
        evaluator: Evaluation strategy
        configure_logging: Set up the ``modoptim`` logger at ``config.log_level``

    Example:
        >>> config = {'optimizer': 'sgd', 'hyperparameters': {'lr': 0.1}}
        >>> optimizer = create_module_optimizer_from_config(config)
    """
    if isinstance(config, dict):
        config = ModuleOptimConfig.from_dict(config)

    if configure_logging:
        setup_logging(level=config.log_level)

    logger.info(f"Creating {config.optimizer} module optimizer with {config.hyperparameters}")
    return create_module_optimizer(
        config.optimizer,
        evaluator=evaluator,
        tie_by_storage=config.tie_by_storage,
        **config.hyperparameters
    )
