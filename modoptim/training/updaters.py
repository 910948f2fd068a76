"""
Update rules backed by ``torch.optim``.

``TorchOptimUpdater`` turns a ``torch.optim.Optimizer`` class into a
per-tensor update function: hyperparameters are read from the tensor's
stored state, and the optimizer's per-parameter buffers (momentum, running
averages, step counters) are kept under ``state['buffers']`` so they travel
with the state through ``export``, ``retype`` and ``load_state_dict``.
"""

import inspect
import logging
from typing import Any, Callable, Dict, Tuple, Type

import torch
from torch.optim import Optimizer

from ..state.config import OptimConfig

logger = logging.getLogger(__name__)


BUFFERS = 'buffers'


class TorchOptimUpdater:
    """
    Per-tensor updater delegating the numeric rule to ``optimizer_cls``.

    Args:
        optimizer_cls: ``torch.optim.Optimizer`` subclass, e.g. ``torch.optim.SGD``

    Example:
        >>> sgd = TorchOptimUpdater(torch.optim.SGD)
        >>> state = OptimConfig(lr=0.1, momentum=0.9)
        >>> sgd(lambda: (loss, grad), weight, state)
    """

    def __init__(self, optimizer_cls: Type[Optimizer]):
        self.optimizer_cls = optimizer_cls
        signature = inspect.signature(optimizer_cls.__init__)
        self.accepted = frozenset(
            name for name in signature.parameters if name not in ('self', 'params')
        )

    def hyperparameters(self, state: OptimConfig) -> Dict[str, Any]:
        """Pick the entries of ``state`` the optimizer constructor accepts."""
        return {k: v for k, v in state.items() if k in self.accepted}

    @torch.no_grad()
    def __call__(
        self,
        closure: Callable[[], Tuple[Any, Any]],
        param: torch.Tensor,
        state: OptimConfig
    ) -> Tuple[Any, Any]:
        loss, grad = closure()

        param.grad = grad
        optimizer = self.optimizer_cls([param], **self.hyperparameters(state))

        # Bind the optimizer's per-parameter state to our stored buffers
        buffers = state.get(BUFFERS)
        if buffers is None:
            buffers = state[BUFFERS] = {}
        optimizer.state[param] = buffers

        optimizer.step()
        return loss, grad

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.optimizer_cls.__name__})"


# ============================================================================
# UPDATER REGISTRY
# ============================================================================

UPDATER_REGISTRY = {
    'sgd': torch.optim.SGD,
    'adam': torch.optim.Adam,
    'adamw': torch.optim.AdamW,
    'adam_w': torch.optim.AdamW,
    'rmsprop': torch.optim.RMSprop,
    'adagrad': torch.optim.Adagrad,
}


def create_updater(name: str) -> TorchOptimUpdater:
    """
    Create an updater by name.

    Args:
        name: Optimizer name ('sgd', 'adam', 'adamw', 'rmsprop', 'adagrad')

    Returns:
        TorchOptimUpdater for the named optimizer
    """
    name_lower = name.lower().strip()

    if name_lower not in UPDATER_REGISTRY:
        available = ', '.join(UPDATER_REGISTRY.keys())
        raise ValueError(
            f"Unknown optimizer: {name}. "
            f"Available optimizers: {available}"
        )

    return TorchOptimUpdater(UPDATER_REGISTRY[name_lower])
