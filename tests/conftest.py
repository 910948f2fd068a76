"""Shared fixtures: small explicit-gradient modules and criteria."""

from types import SimpleNamespace

import pytest
import torch


# ============================================================================
# FAKE MODULES
# ============================================================================

class Linear:
    """Fully-connected layer with hand-written backward."""

    def __init__(self, n_in, n_out, bias=True):
        self.weight = torch.randn(n_out, n_in)
        self.grad_weight = torch.zeros(n_out, n_in)
        self.bias = torch.zeros(n_out) if bias else None
        self.grad_bias = torch.zeros(n_out) if bias else None
        self.shared_with = None

    def children(self):
        return []

    def forward(self, inputs):
        output = inputs @ self.weight.t()
        if self.bias is not None:
            output = output + self.bias
        return output

    def backward(self, inputs, grad_output):
        self.grad_weight.add_(grad_output.t() @ inputs)
        if self.bias is not None:
            self.grad_bias.add_(grad_output.sum(0))
        return grad_output @ self.weight

    def zero_grad_parameters(self):
        self.grad_weight.zero_()
        if self.grad_bias is not None:
            self.grad_bias.zero_()

    def share(self, other):
        """Tie this layer's parameters and gradients to ``other``'s."""
        self.weight = other.weight
        self.grad_weight = other.grad_weight
        self.bias = other.bias
        self.grad_bias = other.grad_bias
        self.shared_with = other
        return self


class Tanh:
    """Activation without parameters."""

    def children(self):
        return []

    def forward(self, inputs):
        self.output = torch.tanh(inputs)
        return self.output

    def backward(self, inputs, grad_output):
        return grad_output * (1 - self.output ** 2)

    def zero_grad_parameters(self):
        pass


class Sequential:
    """Container running its children in order."""

    def __init__(self, *modules):
        self.modules = list(modules)

    def children(self):
        return list(self.modules)

    def forward(self, inputs):
        self.inputs = []
        output = inputs
        for module in self.modules:
            self.inputs.append(output)
            output = module.forward(output)
        return output

    def backward(self, inputs, grad_output):
        grad = grad_output
        for module, module_inputs in reversed(list(zip(self.modules, self.inputs))):
            grad = module.backward(module_inputs, grad)
        return grad

    def zero_grad_parameters(self):
        for module in self.modules:
            module.zero_grad_parameters()


class MSECriterion:
    """Mean squared error with explicit gradient."""

    def forward(self, output, targets):
        return ((output - targets) ** 2).mean().item()

    def backward(self, output, targets):
        return 2 * (output - targets) / output.numel()


class RecordingUpdater:
    """Plain gradient step that records every call."""

    def __init__(self):
        self.calls = []

    def __call__(self, closure, param, state):
        loss, grad = closure()
        self.calls.append(SimpleNamespace(param=param, grad=grad.clone(), state=state, loss=loss))
        param.add_(grad, alpha=-state['lr'])
        return loss, grad


# ============================================================================
# FIXTURES
# ============================================================================

@pytest.fixture(autouse=True)
def seed():
    torch.manual_seed(0)


@pytest.fixture
def fake_nn():
    """Namespace of the fake module classes for ad-hoc models."""
    return SimpleNamespace(
        Linear=Linear,
        Tanh=Tanh,
        Sequential=Sequential,
        MSECriterion=MSECriterion,
        RecordingUpdater=RecordingUpdater
    )


@pytest.fixture
def template():
    return {'lr': 0.1, 'weight_decay': 0.01}


@pytest.fixture
def two_layer_model():
    """Linear -> Tanh -> Linear, no sharing."""
    return Sequential(Linear(4, 3), Tanh(), Linear(3, 2))


@pytest.fixture
def tied_model():
    """Two layers of the same shape, the second tied to the first."""
    first = Linear(3, 3)
    second = Linear(3, 3).share(first)
    return Sequential(first, Tanh(), second)


@pytest.fixture
def criterion():
    return MSECriterion()


@pytest.fixture
def recording_updater():
    return RecordingUpdater()


@pytest.fixture
def batch():
    inputs = torch.randn(5, 4)
    targets = torch.randn(5, 2)
    return inputs, targets
