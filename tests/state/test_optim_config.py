"""Tests for OptimConfig cloning, splicing and retyping."""

import pytest
import torch

from modoptim.errors import InvalidConfig
from modoptim.state import OptimConfig, WEIGHT_DECAY, clone_value, retype_tensors, check_flat_mapping


# ============================================================================
# CLONE
# ============================================================================

def test_clone_is_independent_copy():
    config = OptimConfig(lr=0.1, betas=[0.9, 0.999], buffers={'momentum': torch.ones(3)})
    copy = config.clone()

    copy['lr'] = 0.5
    copy['betas'].append(0.5)
    copy['buffers']['momentum'].add_(1)

    assert config['lr'] == 0.1
    assert config['betas'] == [0.9, 0.999]
    assert torch.equal(config['buffers']['momentum'], torch.ones(3))
    assert isinstance(copy, OptimConfig)


def test_clone_value_copies_tensors():
    tensor = torch.zeros(2)
    cloned = clone_value(tensor)

    assert cloned is not tensor
    assert torch.equal(cloned, tensor)


def test_clone_value_keeps_leaves():
    assert clone_value(3) == 3
    assert clone_value('sgd') == 'sgd'
    assert clone_value((1, 2)) == (1, 2)


def test_from_mapping_rejects_non_mapping():
    with pytest.raises(InvalidConfig):
        OptimConfig.from_mapping([('lr', 0.1)])


def test_from_mapping_clones_values():
    buf = torch.zeros(2)
    config = OptimConfig.from_mapping({'buf': buf})
    config['buf'].add_(1)

    assert torch.equal(buf, torch.zeros(2))


# ============================================================================
# SPLICE
# ============================================================================

def test_splice_overwrites_and_adds():
    config = OptimConfig(lr=0.1, momentum=0.9)
    config.splice({'lr': 0.01, 'nesterov': True})

    assert config == {'lr': 0.01, 'momentum': 0.9, 'nesterov': True}


@pytest.mark.parametrize('bad', [None, 0.1, 'lr', [('lr', 0.1)]])
def test_splice_rejects_non_mapping(bad):
    with pytest.raises(InvalidConfig):
        OptimConfig(lr=0.1).splice(bad)


def test_check_flat_mapping_rejects_nested():
    with pytest.raises(InvalidConfig, match='flat'):
        check_flat_mapping({'lr': 0.1, 'extra': {'a': 1}})


# ============================================================================
# RETYPE
# ============================================================================

def test_retype_converts_float_tensors_only():
    config = OptimConfig(
        lr=0.1,
        buffers={'momentum_buffer': torch.ones(2), 'count': torch.tensor(3)}
    )
    config.retype(torch.float64)

    assert config['lr'] == 0.1
    assert config['buffers']['momentum_buffer'].dtype == torch.float64
    assert config['buffers']['count'].dtype == torch.int64


def test_retype_tensors_walks_lists_and_tuples():
    obj = {'items': [torch.ones(1), (torch.ones(1), 2)]}
    retype_tensors(obj, torch.float16)

    assert obj['items'][0].dtype == torch.float16
    assert obj['items'][1][0].dtype == torch.float16
    assert obj['items'][1][1] == 2


def test_retype_accepts_device_string():
    config = OptimConfig(buf=torch.ones(2))
    config.retype('cpu')

    assert config['buf'].device.type == 'cpu'


def test_weight_decay_key_name():
    assert WEIGHT_DECAY == 'weight_decay'
