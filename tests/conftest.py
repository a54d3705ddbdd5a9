import numpy as np
import pytest

from chain_ik.model import JointChain


STRAIGHT_POSE = [
    [0.0, 0.0, 0.0],
    [0.0, 0.0, 1.0],
    [0.0, 0.0, 3.0],
    [0.0, 0.0, 5.0],
    [0.0, 0.0, 6.0],
]


def assert_same_rotation(r1, r2, atol=1e-9):
    assert (r1.inv() * r2).magnitude() == pytest.approx(0.0, abs=atol)


def unit(v):
    v = np.asarray(v, dtype=np.float64)
    return v / np.linalg.norm(v)


@pytest.fixture
def straight_chain():
    """pivotLength=1, upperLength=2, lowerLength=2, effectorLength=1，沿 +Z 伸直"""
    return JointChain.from_positions(STRAIGHT_POSE)
