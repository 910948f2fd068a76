"""
Hyperparameter configuration for per-module optimizer state.

An ``OptimConfig`` is a plain mapping of hyperparameter names to values
(``lr``, ``momentum``, ``weight_decay`` ...). Once the update rule starts
running it also carries accumulators such as momentum buffers, which is why
cloning has to copy tensors instead of sharing them.

Example:
    >>> template = OptimConfig(lr=0.1, weight_decay=0.01)
    >>> bias_state = template.clone()
    >>> bias_state[WEIGHT_DECAY] = 0.0
    >>> template[WEIGHT_DECAY]
    0.01
"""

from collections.abc import Mapping
from typing import Any, Dict, Union

import torch

from ..errors import InvalidConfig


WEIGHT_DECAY = 'weight_decay'
LEARNING_RATE = 'lr'


# ============================================================================
# VALUE HELPERS
# ============================================================================

def clone_value(value: Any) -> Any:
    """
    Deep-copy a hyperparameter value.

    Tensors are copied with ``Tensor.clone()``, mappings, lists and tuples
    recursively. Anything else is a leaf and copied by value.
    """
    if isinstance(value, torch.Tensor):
        return value.clone()
    if isinstance(value, OptimConfig):
        return value.clone()
    if isinstance(value, Mapping):
        return {clone_value(k): clone_value(v) for k, v in value.items()}
    if isinstance(value, list):
        return [clone_value(v) for v in value]
    if isinstance(value, tuple):
        return tuple(clone_value(v) for v in value)
    return value


def _retype_tensor(tensor: torch.Tensor, target: Union[torch.dtype, torch.device]) -> torch.Tensor:
    # Integer counters (e.g. an Adam step tensor) keep their dtype.
    if isinstance(target, torch.dtype) and not tensor.is_floating_point():
        return tensor
    return tensor.to(target)


def retype_tensors(obj: Any, target: Union[torch.dtype, torch.device, str]) -> Any:
    """
    Convert every tensor nested in ``obj`` to ``target`` in place.

    Mutable containers (dicts, lists) are updated in place and returned;
    tuples are rebuilt. Non-tensor leaves are returned untouched.

    Args:
        obj: Value to walk
        target: ``torch.dtype``, ``torch.device`` or a device string

    Returns:
        The converted value
    """
    if isinstance(target, str):
        target = torch.device(target)

    if isinstance(obj, torch.Tensor):
        return _retype_tensor(obj, target)
    if isinstance(obj, dict):
        for k, v in obj.items():
            obj[k] = retype_tensors(v, target)
        return obj
    if isinstance(obj, list):
        for i, v in enumerate(obj):
            obj[i] = retype_tensors(v, target)
        return obj
    if isinstance(obj, tuple):
        return tuple(retype_tensors(v, target) for v in obj)
    return obj


def check_flat_mapping(values: Any, what: str = 'hyperparameters') -> None:
    """Raise ``InvalidConfig`` unless ``values`` is a mapping of scalars/tensors."""
    if not isinstance(values, Mapping):
        raise InvalidConfig(
            f"{what} must be a mapping, got {type(values).__name__}"
        )
    nested = [k for k, v in values.items() if isinstance(v, Mapping)]
    if nested:
        raise InvalidConfig(
            f"{what} must be a flat mapping; nested mappings under {nested}"
        )


# ============================================================================
# OPTIM CONFIG
# ============================================================================

class OptimConfig(dict):
    """
    Mapping of hyperparameter names to values with an explicit deep clone.

    Clones never share mutable state with their source: mutating one clone
    (including tensors stored in it) leaves the template and every other
    clone unchanged.
    """

    def clone(self) -> 'OptimConfig':
        """Return a deep copy of this config."""
        return OptimConfig((k, clone_value(v)) for k, v in self.items())

    def splice(self, new_values: Mapping) -> 'OptimConfig':
        """
        Overwrite keys with ``new_values`` (last write wins).

        Args:
            new_values: Flat mapping of hyperparameters

        Returns:
            self

        Raises:
            InvalidConfig: If ``new_values`` is not a flat mapping
        """
        check_flat_mapping(new_values)
        for k, v in new_values.items():
            self[k] = v
        return self

    def retype(self, target: Union[torch.dtype, torch.device, str]) -> 'OptimConfig':
        """Convert every tensor held in this config to ``target`` in place."""
        retype_tensors(self, target)
        return self

    def to_dict(self) -> Dict[str, Any]:
        return dict(self)

    @classmethod
    def from_mapping(cls, values: Any, what: str = 'template') -> 'OptimConfig':
        """
        Build a config from any mapping, cloning its values.

        Raises:
            InvalidConfig: If ``values`` is not a mapping
        """
        if not isinstance(values, Mapping):
            raise InvalidConfig(
                f"{what} must be a mapping, got {type(values).__name__}"
            )
        return cls((k, clone_value(v)) for k, v in values.items())

    def __repr__(self) -> str:
        return f"OptimConfig({dict.__repr__(self)})"
