"""Error types raised by modoptim.

All of them are precondition failures caused by misuse of the optimizer or
by a malformed model definition. None are retried.
"""


class ContractViolation(ValueError):
    """A module exposes parameters in an inconsistent shape.

    Examples: a weight without its gradient, a bias without a weight, or a
    parameter-group count other than 0 or 2.
    """


class NotRegistered(LookupError):
    """A module was stepped before being added with ``add_model``."""

    def __init__(self, module, key):
        self.module = module
        self.key = key
        super().__init__(
            f"Module {type(module).__name__} (key={key}) hasn't been added "
            f"to the optimizer. Call add_model() on its root first."
        )


class InvalidConfig(TypeError):
    """A hyperparameter template or update is not a flat mapping."""
