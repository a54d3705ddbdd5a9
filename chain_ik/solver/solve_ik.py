"""
IK求解器实现
使用余弦定理的解析解，每个更新周期调用一次

求解顺序（每一步写入后刷新场景图，后续步骤读取的位置依赖前一步的旋转）：
1. Pivot 朝向 effector_target
2. 以 Upper、Lower、effector_target 构成三角形，求 Upper/Lower 的弯曲角
3. Effector 朝向 tip_target
"""
import copy
import logging
import numpy as np
from scipy.spatial.transform import Rotation as R
from typing import NamedTuple, Optional, Sequence

from chain_ik.model.chain import ANCHOR_NAMES, JointChain
from chain_ik.model.joint import SphericalJoint
from .ik_core import (
    WORLD_UP,
    ChainLengths,
    DegenerateChainError,
    as_vector,
    bend_rotation,
    compute_lengths,
    derive_targets,
    look_rotation,
    normalize_axis,
    solve_triangle
)

logger = logging.getLogger(__name__)


class SolveResult(NamedTuple):
    pivot_rotation: R            # 世界旋转
    upper_local_rotation: R
    lower_local_rotation: R
    effector_rotation: R         # 世界旋转
    effector_target: np.ndarray
    tip_target: np.ndarray
    angle_b: float               # 度；不可达时为 NaN
    angle_c: float
    reachable: bool


def solve_ik(chain: JointChain,
             lengths: ChainLengths,
             target: Sequence[float],
             normal: Sequence[float],
             bend_axis: Sequence[float] = (1.0, 0.0, 0.0),
             forward_axis: Sequence[float] = (0.0, 0.0, 1.0),
             up_axis: Sequence[float] = (0.0, 1.0, 0.0),
             world_up: Sequence[float] = WORLD_UP) -> SolveResult:
    """
    对关节链执行一次解析IK求解，直接写入各锚点的旋转

    :param chain: 完整的五锚点关节链
    :param lengths: 初始化时计算的段长
    :param target: Tip 的目标位置
    :param normal: 末段的期望朝向
    :param bend_axis: Upper/Lower 的弯曲轴（局部坐标系）
    :param forward_axis: 段模型的局部前向轴
    :param up_axis: 段模型的局部上向轴
    :param world_up: look rotation 使用的世界上方向
    :return: SolveResult；三角形不成立时 Upper/Lower 保持上一次的旋转
    """
    effector_target, tip_target = derive_targets(target, normal, lengths.effector_length)
    chain.refresh()

    # Pivot 直接指向 effector_target，吸收整条臂的偏航与俯仰
    pivot_rotation = look_rotation(effector_target - chain.pivot.world_position,
                                   world_up, forward_axis, up_axis)
    if pivot_rotation is not None:
        chain.pivot.set_world_rotation(pivot_rotation)
        chain.refresh()

    a = lengths.upper_length
    b = lengths.lower_length
    c = float(np.linalg.norm(effector_target - chain.upper.world_position))
    angle_b, angle_c = solve_triangle(a, b, c)

    reachable = not np.isnan(angle_c)
    if reachable:
        chain.upper.set_local_rotation(bend_rotation(-angle_b, bend_axis))
        chain.lower.set_local_rotation(bend_rotation(180.0 - angle_c, bend_axis))
        chain.refresh()
    else:
        logger.debug("Effector target unreachable (a=%.4f, b=%.4f, c=%.4f), keeping upper/lower pose",
                     a, b, c)

    effector_rotation = look_rotation(tip_target - chain.effector.world_position,
                                      world_up, forward_axis, up_axis)
    if effector_rotation is not None:
        chain.effector.set_world_rotation(effector_rotation)
        chain.refresh()

    logger.debug("Solved target=%s normal=%s angle_b=%.4f angle_c=%.4f reachable=%s",
                 tip_target, normal, angle_b, angle_c, reachable)

    return SolveResult(
        pivot_rotation=chain.pivot.world_rotation,
        upper_local_rotation=chain.upper.local_rotation,
        lower_local_rotation=chain.lower.local_rotation,
        effector_rotation=chain.effector.world_rotation,
        effector_target=effector_target,
        tip_target=tip_target,
        angle_b=angle_b,
        angle_c=angle_c,
        reachable=reachable
    )


class ChainSolver:
    """
    四段关节链的解析IK求解器
    段长在构造时由链的当前姿态计算一次，此后视为不变；target/normal 可在每个周期被外部修改
    """

    def __init__(self,
                 chain: JointChain,
                 bend_axis: Sequence[float] = (1.0, 0.0, 0.0),
                 forward_axis: Sequence[float] = (0.0, 0.0, 1.0),
                 up_axis: Sequence[float] = (0.0, 1.0, 0.0),
                 world_up: Sequence[float] = WORLD_UP,
                 target: Sequence[float] = (0.0, 0.0, 1.0),
                 normal: Sequence[float] = (0.0, 1.0, 0.0)):
        """
        :param chain: 五锚点关节链，当前姿态须为有效的静止姿态
        :param bend_axis: Upper/Lower 的弯曲轴（局部坐标系）
        :param forward_axis: 段模型的局部前向轴
        :param up_axis: 段模型的局部上向轴，须与 forward_axis 正交
        :param world_up: look rotation 使用的世界上方向
        :param target: 初始目标位置
        :param normal: 初始末段朝向
        :raises DegenerateChainError: 锚点缺失、锚点姿态不可写或存在零长度段
        :raises ValueError: 锚点不构成同一条祖先路径
        """
        missing = chain.missing_anchors()
        if missing:
            raise DegenerateChainError(f"Chain is missing anchors: {', '.join(missing)}")
        # 求解器会写入前四个锚点的旋转
        for name, node in zip(ANCHOR_NAMES[:4], chain.anchors()[:4]):
            if not isinstance(node, SphericalJoint):
                raise DegenerateChainError(
                    f"Anchor '{name}' ({node.name}) must be a spherical joint, got {type(node).__name__}"
                )
        chain.check_hierarchy()

        self.bend_axis = normalize_axis(bend_axis)
        self.forward_axis = normalize_axis(forward_axis)
        self.up_axis = normalize_axis(up_axis)
        self.world_up = normalize_axis(world_up)
        if abs(np.dot(self.forward_axis, self.up_axis)) > 1e-6:
            raise ValueError(f"forward_axis {forward_axis} and up_axis {up_axis} must be orthogonal")

        self.chain = chain
        self.chain.refresh()
        positions = chain.positions()
        self.lengths = compute_lengths(*[positions[name] for name in ANCHOR_NAMES])
        logger.debug("Chain lengths: %s", self.lengths)

        self.target = as_vector(target).copy()
        self.normal = as_vector(normal).copy()
        self.last_result: Optional[SolveResult] = None

    def _solve_on(self, chain: JointChain) -> SolveResult:
        return solve_ik(chain, self.lengths, self.target, self.normal,
                        bend_axis=self.bend_axis,
                        forward_axis=self.forward_axis,
                        up_axis=self.up_axis,
                        world_up=self.world_up)

    def solve(self,
              target: Optional[Sequence[float]] = None,
              normal: Optional[Sequence[float]] = None) -> SolveResult:
        """
        执行一个周期的求解并写回关节链。传入的 target/normal 会覆盖保存的值。

        :param target: Tip 的目标位置，None 表示沿用 self.target
        :param normal: 末段朝向，None 表示沿用 self.normal
        :return: SolveResult
        """
        if target is not None:
            self.target = as_vector(target).copy()
        if normal is not None:
            self.normal = as_vector(normal).copy()

        self.last_result = self._solve_on(self.chain)
        return self.last_result

    def preview(self,
                target: Optional[Sequence[float]] = None,
                normal: Optional[Sequence[float]] = None) -> SolveResult:
        """在关节链的副本上求解，不修改关节链与保存的 target/normal"""
        previewer = copy.copy(self)
        previewer.target = self.target if target is None else as_vector(target).copy()
        previewer.normal = self.normal if normal is None else as_vector(normal).copy()
        return previewer._solve_on(copy.deepcopy(self.chain))

    def distance_to_target(self) -> float:
        """Tip 当前位置到 target 的距离"""
        return self.chain.tip_distance(self.target)
