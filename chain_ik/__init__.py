"""
chain_ik - 四段关节链（Pivot -> Upper -> Lower -> Effector -> Tip）的解析IK求解
"""

from .model import JointChain, JointNode, FixedJoint, SphericalJoint
from .solver import ChainSolver, ChainLengths, DegenerateChainError, SolveResult, compute_lengths

__all__ = [
    'JointChain',
    'JointNode',
    'FixedJoint',
    'SphericalJoint',
    'ChainSolver',
    'ChainLengths',
    'DegenerateChainError',
    'SolveResult',
    'compute_lengths'
]
