"""
Optimizer state store: one hyperparameter clone per module parameter group.

The store maps a module key (see ``ModuleKeyResolver``) to a list of
``OptimConfig`` clones, index 0 for the weight and index 1 for the bias.
Parameters of different modules may live in separate allocations, so each
tensor gets its own state instead of one flattened parameter vector.

Example:
    >>> store = OptimizerStateStore({'lr': 0.1, 'weight_decay': 0.01})
    >>> store.add_model(model)
    >>> store.set_hyperparameters({'lr': 0.01})
    >>> snapshot = store.export()
"""

import logging
from collections.abc import Mapping
from typing import Any, Dict, Iterator, List, Optional, Union

import torch

from ..errors import ContractViolation, NotRegistered
from .config import OptimConfig, WEIGHT_DECAY, check_flat_mapping
from .keys import ModuleKeyResolver
from .params import (
    extract_parameter_groups,
    iter_modules,
    validate_parameter_groups,
    validate_state_count
)

logger = logging.getLogger(__name__)


class OptimizerStateStore:
    """
    Per-module, per-parameter-group optimizer state.

    Args:
        template: Hyperparameters every new state is cloned from
        resolver: Key resolver (a fresh ``ModuleKeyResolver`` by default)

    Raises:
        InvalidConfig: If ``template`` is not a mapping
    """

    def __init__(self, template: Mapping, resolver: Optional[ModuleKeyResolver] = None):
        self._template = OptimConfig.from_mapping(template)
        self.resolver = resolver if resolver is not None else ModuleKeyResolver()
        self._states: Dict[int, List[OptimConfig]] = {}

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def add_model(self, model) -> int:
        """
        Register every module of the tree rooted at ``model``.

        Modules whose key is already registered (shared parameters, or a
        second call on the same tree) are skipped, so the call is idempotent.
        Bias states always get ``weight_decay = 0``.

        Args:
            model: Root of the model tree

        Returns:
            Number of keys added by this call

        Raises:
            ContractViolation: If a module has a weight without a bias or a
                bias without a weight, or shares a key with a module that has
                a different number of parameter groups
        """
        added = 0
        skipped = 0

        for module in iter_modules(model):
            key = self.resolver.resolve_key(module)

            groups = extract_parameter_groups(module)
            validate_parameter_groups(module, groups)

            if key in self._states:
                validate_state_count(module, groups, self._states[key])
                skipped += 1
                logger.debug(f"Detected shared module {type(module).__name__} (key={key}), skipping")
                continue

            states = []
            for group in groups:
                state = self._template.clone()
                if group.is_bias:
                    # never regularize biases
                    state[WEIGHT_DECAY] = 0.0
                states.append(state)

            self._states[key] = states
            added += 1

        logger.info(
            f"Added {type(model).__name__} to optimizer: {added} new modules, "
            f"{skipped} shared or already registered"
        )
        return added

    def resolve_key(self, module) -> int:
        return self.resolver.resolve_key(module)

    def tie(self, module, target) -> int:
        """Declare that ``module`` shares its parameters with ``target``."""
        return self.resolver.tie(module, target)

    def get_state(self, module) -> List[OptimConfig]:
        """
        Return the list of per-group states of ``module``.

        Raises:
            NotRegistered: If the module's key was never added
        """
        key = self.resolver.lookup_key(module)
        if key is None or key not in self._states:
            raise NotRegistered(module, key)
        return self._states[key]

    def __contains__(self, module) -> bool:
        key = self.resolver.lookup_key(module)
        return key is not None and key in self._states

    def __len__(self) -> int:
        return len(self._states)

    def keys(self) -> List[int]:
        return list(self._states.keys())

    def items(self) -> Iterator:
        return iter(self._states.items())

    @property
    def template(self) -> OptimConfig:
        return self._template

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def set_hyperparameters(self, new_values: Mapping) -> None:
        """
        Splice ``new_values`` into the template and every stored state.

        Useful for learning-rate schedules: no state is rebuilt, momentum
        buffers survive.

        Raises:
            InvalidConfig: If ``new_values`` is not a flat mapping
        """
        check_flat_mapping(new_values)

        self._template.splice(new_values)
        for states in self._states.values():
            for state in states:
                state.splice(new_values)

        logger.info(f"Updated hyperparameters {dict(new_values)} on {len(self._states)} modules")

    def retype(self, target: Union[torch.dtype, torch.device, str]) -> 'OptimizerStateStore':
        """
        Convert every tensor in every stored state to ``target``.

        Floating-point tensors follow a dtype target; any tensor follows a
        device target. Integer and bool tensors (e.g. step counters) are
        not converted by a dtype target, the same convention as
        ``nn.Module.to``, so not every tensor-valued entry changes dtype.
        Scalar hyperparameters are left untouched.
        """
        for states in self._states.values():
            for state in states:
                state.retype(target)
        logger.debug(f"Retyped optimizer state to {target}")
        return self

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------

    def export(self) -> Dict[str, Any]:
        """
        Return the full key -> states mapping for checkpoint writers.

        The snapshot references the live state objects; writers serialize it
        (e.g. with ``torch.save``) without it being copied first.
        """
        return {'optim_state': self._states}

    def load_state_dict(self, snapshot: Mapping) -> None:
        """
        Restore states from a snapshot produced by ``export``.

        The model must already be registered with ``add_model`` in the same
        order as when the snapshot was taken, so keys line up.

        Raises:
            ContractViolation: If keys or group counts don't match
        """
        state = snapshot.get('optim_state') if isinstance(snapshot, Mapping) else None
        if not isinstance(state, Mapping):
            raise ContractViolation("Snapshot must contain an 'optim_state' mapping")

        if set(state.keys()) != set(self._states.keys()):
            raise ContractViolation(
                f"Snapshot keys {sorted(state.keys())} don't match registered "
                f"keys {sorted(self._states.keys())}"
            )

        restored = {}
        for key, states in state.items():
            if len(states) != len(self._states[key]):
                raise ContractViolation(
                    f"Snapshot has {len(states)} states for key {key}, "
                    f"expected {len(self._states[key])}"
                )
            restored[key] = [OptimConfig.from_mapping(s, what='state') for s in states]

        self._states = restored
        logger.info(f"Loaded optimizer state for {len(restored)} modules")

    def state_dict(self) -> Dict[str, Any]:
        return self.export()

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(modules={len(self._states)}, template={dict(self._template)})"
