"""Tests for the torch.optim-backed update rules."""

import pytest
import torch

from modoptim.state import OptimConfig, OptimizerStateStore
from modoptim.training import StepDriver, TorchOptimUpdater, create_updater, UPDATER_REGISTRY
from modoptim.training.updaters import BUFFERS


def _run_reference(optimizer_cls, param, grad, steps, **hyperparameters):
    reference = param.clone().requires_grad_(True)
    optimizer = optimizer_cls([reference], **hyperparameters)
    for _ in range(steps):
        reference.grad = grad.clone()
        optimizer.step()
    return reference.detach()


# ============================================================================
# NUMERICS MATCH TORCH
# ============================================================================

def test_sgd_updater_matches_torch_sgd():
    param, grad = torch.randn(3, 2), torch.randn(3, 2)
    hyper = {'lr': 0.1, 'momentum': 0.9, 'weight_decay': 0.01}
    expected = _run_reference(torch.optim.SGD, param, grad, steps=3, **hyper)

    state = OptimConfig(hyper)
    updater = TorchOptimUpdater(torch.optim.SGD)
    for _ in range(3):
        updater(lambda: (1.0, grad), param, state)

    assert torch.allclose(param, expected)
    assert 'momentum_buffer' in state[BUFFERS]


def test_adam_updater_matches_torch_adam():
    param, grad = torch.randn(4), torch.randn(4)
    expected = _run_reference(torch.optim.Adam, param, grad, steps=5, lr=0.01)

    state = OptimConfig(lr=0.01)
    updater = create_updater('adam')
    for _ in range(5):
        updater(lambda: (0.0, grad), param, state)

    assert torch.allclose(param, expected, atol=1e-6)
    assert {'exp_avg', 'exp_avg_sq', 'step'} <= set(state[BUFFERS])


def test_updater_returns_closure_values():
    param, grad = torch.zeros(2), torch.ones(2)
    state = OptimConfig(lr=0.5)

    loss, used = create_updater('sgd')(lambda: (3.0, grad), param, state)

    assert loss == 3.0
    assert used is grad
    assert torch.allclose(param, torch.full((2,), -0.5))


def test_updater_ignores_unknown_hyperparameters():
    updater = TorchOptimUpdater(torch.optim.SGD)
    state = OptimConfig(lr=0.1, name='sgd', schedule='cosine')

    assert updater.hyperparameters(state) == {'lr': 0.1}


# ============================================================================
# REGISTRY
# ============================================================================

@pytest.mark.parametrize('name', ['sgd', 'adam', 'adamw', 'rmsprop', 'adagrad', ' SGD '])
def test_create_updater(name):
    updater = create_updater(name)

    assert isinstance(updater, TorchOptimUpdater)
    assert updater.optimizer_cls is UPDATER_REGISTRY[name.lower().strip()]


def test_create_updater_unknown():
    with pytest.raises(ValueError, match='Available optimizers'):
        create_updater('lbfgs-ish')


# ============================================================================
# WITH THE STORE
# ============================================================================

def test_momentum_buffers_live_in_exported_state(two_layer_model, criterion, batch):
    store = OptimizerStateStore({'lr': 0.1, 'momentum': 0.9, 'weight_decay': 1e-4})
    store.add_model(two_layer_model)
    driver = StepDriver(store)
    updater = create_updater('sgd')

    driver.step(two_layer_model, updater, *batch, criterion)

    first = two_layer_model.modules[0]
    snapshot = store.export()['optim_state']
    weight_state, bias_state = snapshot[store.resolve_key(first)]
    assert weight_state[BUFFERS]['momentum_buffer'].shape == first.weight.shape
    assert bias_state[BUFFERS]['momentum_buffer'].shape == first.bias.shape

    store.retype(torch.float64)
    assert weight_state[BUFFERS]['momentum_buffer'].dtype == torch.float64
    assert weight_state['momentum'] == 0.9


def test_set_hyperparameters_keeps_buffers(two_layer_model, criterion, batch):
    store = OptimizerStateStore({'lr': 0.1, 'momentum': 0.9})
    store.add_model(two_layer_model)
    updater = create_updater('sgd')
    StepDriver(store).step(two_layer_model, updater, *batch, criterion)
    first = two_layer_model.modules[0]
    buffer = store.get_state(first)[0][BUFFERS]['momentum_buffer']

    store.set_hyperparameters({'lr': 0.01})

    assert store.get_state(first)[0][BUFFERS]['momentum_buffer'] is buffer
    assert store.get_state(first)[0]['lr'] == 0.01
