"""Device placement helpers for per-module operations."""

from contextlib import contextmanager, nullcontext
from typing import Optional

import torch

from ..errors import ContractViolation
from ..state.params import extract_parameter_groups


def get_module_device(module) -> Optional[torch.device]:
    """
    Return the CUDA device holding ``module``'s parameters and gradients.

    Returns:
        The CUDA device, or None if the module has no CUDA tensors

    Raises:
        ContractViolation: If the tensors are spread over several CUDA devices
    """
    device = None
    for group in extract_parameter_groups(module):
        for tensor in (group.param, group.grad):
            if not isinstance(tensor, torch.Tensor) or tensor.device.type != 'cuda':
                continue
            if device is not None and tensor.device != device:
                raise ContractViolation(
                    f"{type(module).__name__} has tensors on both {device} and {tensor.device}"
                )
            device = tensor.device
    return device


@contextmanager
def device_scope(module):
    """
    Make ``module``'s CUDA device current for the duration of the block.

    The previous current device is restored on exit, including when the
    block raises. No-op for modules without CUDA tensors.

    Example:
        >>> with device_scope(layer):
        ...     update_fn(closure, layer.weight, state)
    """
    device = get_module_device(module)
    guard = torch.cuda.device(device) if device is not None else nullcontext()
    with guard:
        yield device
