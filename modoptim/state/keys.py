"""
Module keys for optimizer state.

Modules that share parameter storage (tied encoder/decoder weights, for
instance) must share one optimizer state, otherwise momentum and running
averages get split across two copies. ``ModuleKeyResolver`` gives every
module a stable integer id and keeps a union-find alias map over those ids;
the canonical id of a shared group is the state key.

Sharing is declared in one of three ways:

- ``resolver.tie(module, target)``;
- a non-None ``shared_with`` attribute on an explicit-gradient module;
- identical weight and bias storage, when ``tie_by_storage=True``.
"""

import logging
from typing import Any, Dict, Optional

import torch

from ..errors import ContractViolation

logger = logging.getLogger(__name__)


class ModuleKeyResolver:
    """
    Arena of module ids with an alias map for shared storage.

    Ids are assigned in the order modules are first seen, so walking the same
    tree in the same order on a fresh resolver reproduces the same keys. The
    canonical id of a shared group is its smallest member id.

    Args:
        tie_by_storage: Also tie modules whose weight and bias share storage

    Example:
        >>> resolver = ModuleKeyResolver()
        >>> resolver.tie(decoder, encoder)
        >>> resolver.resolve_key(decoder) == resolver.resolve_key(encoder)
        True
    """

    def __init__(self, tie_by_storage: bool = False):
        self.tie_by_storage = tie_by_storage
        # id(module) -> arena id. Modules are kept alive in _modules so
        # Python object ids can't be recycled under us.
        self._ids: Dict[int, int] = {}
        self._modules = []
        self._parent = []
        self._storage_owner: Dict[Any, Any] = {}

    def __len__(self) -> int:
        return len(self._modules)

    def module_id(self, module) -> int:
        """Return the stable arena id of ``module``, assigning one if new."""
        idx = self._ids.get(id(module))
        if idx is None:
            idx = len(self._modules)
            self._ids[id(module)] = idx
            self._modules.append(module)
            self._parent.append(idx)
        return idx

    def _find(self, idx: int) -> int:
        root = idx
        while self._parent[root] != root:
            root = self._parent[root]
        # Path compression
        while self._parent[idx] != root:
            self._parent[idx], idx = root, self._parent[idx]
        return root

    def _union(self, a: int, b: int) -> int:
        ra, rb = self._find(a), self._find(b)
        if ra == rb:
            return ra
        root, child = (ra, rb) if ra < rb else (rb, ra)
        self._parent[child] = root
        return root

    def tie(self, module, target) -> int:
        """
        Declare that ``module`` shares its parameters with ``target``.

        Returns:
            The canonical key of the merged group
        """
        # Target first so it gets the smaller id when both are new
        target_id = self.module_id(target)
        module_id = self.module_id(module)
        key = self._union(module_id, target_id)
        logger.debug(
            f"Tied {type(module).__name__}#{module_id} to "
            f"{type(target).__name__}#{target_id} (key={key})"
        )
        return key

    def _tensor_storage(self, tensor) -> Optional[Any]:
        if not isinstance(tensor, torch.Tensor):
            return None
        storage = tensor.untyped_storage()
        if storage.nbytes() == 0:
            return None
        return (tensor.device, storage.data_ptr())

    def _tie_by_storage(self, module, idx: int) -> None:
        # Modules are merged only when weight and bias both share storage
        signature = (
            self._tensor_storage(getattr(module, 'weight', None)),
            self._tensor_storage(getattr(module, 'bias', None)),
        )
        for storage in signature:
            if storage is None:
                continue
            owner, owner_signature = self._storage_owner.setdefault(storage, (idx, signature))
            if owner == idx:
                continue
            if owner_signature != signature:
                raise ContractViolation(
                    f"{type(module).__name__}#{idx} shares only part of its parameters "
                    f"with {type(self._modules[owner]).__name__}#{owner}; tie weight "
                    f"and bias together or not at all"
                )
            self._union(idx, owner)

    def resolve_key(self, module) -> int:
        """
        Return the state key of ``module``, assigning an id if it is new.

        Repeated calls, and calls on any module sharing storage with it,
        return the same key.

        Raises:
            ContractViolation: With ``tie_by_storage``, if the module shares
                its weight but not its bias (or the reverse) with another
        """
        target = getattr(module, 'shared_with', None)
        if target is not None and target is not module:
            self.tie(module, target)

        idx = self.module_id(module)

        if self.tie_by_storage:
            self._tie_by_storage(module, idx)

        return self._find(idx)

    def lookup_key(self, module) -> Optional[int]:
        """Return the key of an already known module, or None. Assigns nothing."""
        idx = self._ids.get(id(module))
        if idx is None:
            return None
        return self._find(idx)

    def aliases(self) -> Dict[int, int]:
        """Map every known arena id to its canonical key."""
        return {idx: self._find(idx) for idx in range(len(self._parent))}
