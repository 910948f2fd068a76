"""Training step driver: evaluate once, then update every parameter group."""

import logging
from typing import Any, Optional, Tuple

from ..state.params import (
    extract_parameter_groups,
    iter_modules,
    validate_gradients,
    validate_parameter_groups,
    validate_state_count
)
from ..state.store import OptimizerStateStore
from ..utils.devices import device_scope
from .base import Evaluator, Updater, default_evaluator

logger = logging.getLogger(__name__)


class StepDriver:
    """
    Drives one optimization iteration over a model tree.

    The driver keeps no state between calls; optimizer state lives in the
    store and is mutated in place by the update function.

    Args:
        store: Store the model was registered with
        evaluator: Default evaluation strategy (``default_evaluator`` if None)

    Example:
        >>> driver = StepDriver(store)
        >>> loss, output = driver.step(model, sgd, inputs, targets, criterion)
    """

    def __init__(self, store: OptimizerStateStore, evaluator: Optional[Evaluator] = None):
        self.store = store
        self.evaluator = evaluator or default_evaluator

    def step(
        self,
        model,
        update_fn: Updater,
        inputs,
        targets,
        loss_fn,
        eval_fn: Optional[Evaluator] = None
    ) -> Tuple[Any, Any]:
        """
        Run one forward/backward/update cycle.

        Args:
            model: Root of the model tree
            update_fn: Per-tensor update rule
            inputs: Batch inputs
            targets: Batch targets
            loss_fn: Loss function understood by the evaluator
            eval_fn: Evaluation strategy overriding the driver's default

        Returns:
            loss: Loss from the evaluator
            output: Model output

        Raises:
            NotRegistered: If a module was never added to the store. Raised
                before any parameter is updated.
            ContractViolation: If a module's parameters or gradients are
                inconsistent, or don't match the states stored under its key
        """
        eval_fn = eval_fn or self.evaluator
        loss, output = eval_fn(model, inputs, targets, loss_fn)

        # Resolve everything up front so a missing registration aborts
        # before the first parameter is touched.
        plan = []
        for module in iter_modules(model):
            states = self.store.get_state(module)
            groups = extract_parameter_groups(module)
            validate_parameter_groups(module, groups)
            validate_gradients(module, groups)
            validate_state_count(module, groups, states)
            if groups:
                plan.append((module, groups, states))

        for module, groups, states in plan:
            with device_scope(module):
                for group, state in zip(groups, states):
                    def closure(grad=group.grad):
                        return loss, grad

                    update_fn(closure, group.param, state)

        logger.debug(f"Stepped {len(plan)} parameterized modules")
        return loss, output
