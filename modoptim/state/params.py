"""
Parameter extraction for modules in a model tree.

Each module contributes at most two parameter groups: its weight and its
bias, each paired with the matching gradient tensor. Two kinds of modules are
understood:

- explicit-gradient modules exposing ``weight``/``grad_weight`` and
  ``bias``/``grad_bias`` attributes;
- ``torch.nn.Module`` instances, whose gradients live on ``tensor.grad``.

Extraction only mirrors what the module exposes. Callers validate the
result with ``validate_parameter_groups`` and ``validate_gradients``.
"""

from dataclasses import dataclass
from typing import Any, Iterator, List, Optional

import torch

from ..errors import ContractViolation


@dataclass(frozen=True)
class ParameterGroup:
    """A parameter tensor, its gradient, and whether it is a bias."""

    param: Any
    grad: Optional[Any]
    is_bias: bool = False


def iter_modules(root) -> Iterator[Any]:
    """
    Walk the model tree rooted at ``root`` in pre-order.

    Every module is yielded exactly once even if it appears at several places
    in the tree. The order is deterministic for a fixed tree.

    Args:
        root: Root module; children are read from ``children()``

    Yields:
        Modules, root first
    """
    seen = set()
    stack = [root]
    while stack:
        module = stack.pop()
        if id(module) in seen:
            continue
        seen.add(id(module))
        yield module

        children = getattr(module, 'children', None)
        if children is None:
            continue
        # Reversed so the first child is visited first
        stack.extend(reversed(list(children())))


def _gradient_of(module, tensor, grad_attr: str):
    grad = getattr(module, grad_attr, None)
    if grad is None and isinstance(tensor, torch.Tensor):
        grad = tensor.grad
    return grad


def extract_parameter_groups(module) -> List[ParameterGroup]:
    """
    Return the weight and bias groups of ``module`` (0, 1 or 2 of them).

    Example:
        >>> groups = extract_parameter_groups(torch.nn.Linear(4, 2))
        >>> [g.is_bias for g in groups]
        [False, True]
    """
    groups = []

    weight = getattr(module, 'weight', None)
    if weight is not None:
        groups.append(ParameterGroup(weight, _gradient_of(module, weight, 'grad_weight'), False))

    bias = getattr(module, 'bias', None)
    if bias is not None:
        groups.append(ParameterGroup(bias, _gradient_of(module, bias, 'grad_bias'), True))

    return groups


def validate_parameter_groups(module, groups: List[ParameterGroup]) -> None:
    """
    Check that ``module`` has either no parameters or a weight and a bias.

    Raises:
        ContractViolation: On a weight-only or bias-only module
    """
    if len(groups) == 0:
        return
    if len(groups) != 2 or groups[0].is_bias or not groups[1].is_bias:
        kinds = ['bias' if g.is_bias else 'weight' for g in groups]
        raise ContractViolation(
            f"{type(module).__name__} exposes parameter groups {kinds}; "
            f"expected none or exactly ['weight', 'bias']"
        )


def validate_gradients(module, groups: List[ParameterGroup]) -> None:
    """
    Check that every group carries both its parameter and its gradient.

    Raises:
        ContractViolation: If a gradient tensor is missing
    """
    for group in groups:
        if group.param is None or group.grad is None:
            kind = 'bias' if group.is_bias else 'weight'
            raise ContractViolation(
                f"{type(module).__name__} has a {kind} without its gradient"
            )


def validate_state_count(module, groups: List[ParameterGroup], states: List[Any]) -> None:
    """
    Check that ``module`` has one stored state per parameter group.

    Fails when a module shares a key with a module of a different shape,
    e.g. a layer declared as sharing with a parameterless activation.

    Raises:
        ContractViolation: If the counts differ
    """
    if len(groups) != len(states):
        raise ContractViolation(
            f"{type(module).__name__} has {len(groups)} parameter groups but its "
            f"shared key holds {len(states)} states"
        )
