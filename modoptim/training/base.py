"""
Evaluation and update capabilities used by the step driver.

An evaluator runs the model on a batch and leaves every module's gradient
tensors populated. An updater applies one numeric optimization step to a
single parameter tensor, using and advancing that tensor's own state.
"""

from typing import Any, Callable, Protocol, Tuple

import torch

from ..state.config import OptimConfig


# ============================================================================
# PROTOCOLS
# ============================================================================

class Evaluator(Protocol):
    """Protocol for evaluation strategies."""

    def __call__(self, model, inputs, targets, loss_fn) -> Tuple[Any, Any]:
        """
        Compute the loss and populate gradients in-place on ``model``.

        Returns:
            loss: Scalar loss
            output: Model output
        """
        ...


class Updater(Protocol):
    """Protocol for per-tensor update rules (SGD, Adam, ...)."""

    def __call__(
        self,
        closure: Callable[[], Tuple[Any, Any]],
        param: Any,
        state: OptimConfig
    ) -> Tuple[Any, Any]:
        """
        Update ``param`` in place.

        Args:
            closure: Returns ``(loss, gradient)`` for ``param``
            param: Parameter tensor, mutated in place
            state: Hyperparameters and accumulators, mutated in place

        Returns:
            loss: Loss returned by the closure
            grad: Gradient used for the update
        """
        ...


# ============================================================================
# EVALUATORS
# ============================================================================

def default_evaluator(model, inputs, targets, loss_fn):
    """
    Evaluate an explicit-gradient model.

    Zeroes the gradients, runs ``forward``, computes the loss and its
    gradient with ``loss_fn.forward``/``loss_fn.backward`` and
    back-propagates it with ``model.backward(inputs, grad)``.
    """
    model.zero_grad_parameters()
    output = model.forward(inputs)

    loss = loss_fn.forward(output, targets)

    grad_output = loss_fn.backward(output, targets)
    model.backward(inputs, grad_output)

    return loss, output


def autograd_evaluator(model: torch.nn.Module, inputs, targets, loss_fn):
    """
    Evaluate a ``torch.nn.Module`` tree with autograd.

    Gradients are zeroed in place rather than set to None so every
    trainable parameter has a gradient tensor after ``backward``.
    ``loss_fn`` is any callable returning a scalar tensor.
    """
    model.zero_grad(set_to_none=False)
    output = model(inputs)

    loss = loss_fn(output, targets)
    loss.backward()

    return loss.detach(), output.detach()
