"""
求解层 (Solver Layer)
纯数学计算，负责段长初始化、中间目标点推导、余弦定理求角及旋转写回
"""

from .ik_core import (
    ChainLengths,
    DegenerateChainError,
    bend_rotation,
    compute_lengths,
    derive_targets,
    look_rotation,
    solve_triangle
)
from .solve_ik import ChainSolver, SolveResult, solve_ik

__all__ = [
    'ChainLengths',
    'DegenerateChainError',
    'bend_rotation',
    'compute_lengths',
    'derive_targets',
    'look_rotation',
    'solve_triangle',
    'ChainSolver',
    'SolveResult',
    'solve_ik'
]
