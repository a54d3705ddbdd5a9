"""
解析IK核心算法实现
纯数学计算：段长、派生目标点、朝向（look rotation）、弯曲旋转、余弦定理三角形求解
"""
import numpy as np
from scipy.spatial.transform import Rotation as R
from typing import NamedTuple, Optional, Sequence, Tuple


WORLD_UP = np.array([0.0, 1.0, 0.0])
LENGTH_EPSILON = 1e-9


class DegenerateChainError(ValueError):
    """关节链无法计算有效段长（零长度段或锚点缺失）"""


class ChainLengths(NamedTuple):
    pivot_length: float
    upper_length: float
    lower_length: float
    effector_length: float


def as_vector(value: Sequence[float]) -> np.ndarray:
    vector = np.asarray(value, dtype=np.float64)
    if vector.shape != (3,):
        raise ValueError(f"Expected a 3-element vector, got shape {vector.shape}")
    return vector


def normalize_axis(axis: Sequence[float]) -> np.ndarray:
    axis = as_vector(axis)
    axis_norm = np.linalg.norm(axis)
    if axis_norm < 1e-6:
        raise ValueError(f"Axis vector is too small to be normalized: {axis}")
    return axis / axis_norm


def compute_lengths(pivot: Sequence[float],
                    upper: Sequence[float],
                    lower: Sequence[float],
                    effector: Sequence[float],
                    tip: Sequence[float]) -> ChainLengths:
    """
    由静止姿态下五个锚点的世界坐标计算四段长度

    :return: ChainLengths(pivot_length, upper_length, lower_length, effector_length)
    :raises DegenerateChainError: 任意相邻两点重合
    """
    points = [as_vector(p) for p in (pivot, upper, lower, effector, tip)]
    lengths = [float(np.linalg.norm(points[i + 1] - points[i])) for i in range(4)]

    for field, length in zip(ChainLengths._fields, lengths):
        if length <= LENGTH_EPSILON:
            raise DegenerateChainError(f"Chain segment '{field}' has zero length")

    return ChainLengths(*lengths)


def derive_targets(target: Sequence[float],
                   normal: Sequence[float],
                   effector_length: float) -> Tuple[np.ndarray, np.ndarray]:
    """
    计算本次求解的两个中间目标点

    :param target: Tip 的目标位置
    :param normal: 末段的期望朝向（不要求单位长度）
    :param effector_length: Effector->Tip 段长
    :return: (effector_target, tip_target)
    """
    tip_target = as_vector(target).copy()
    effector_target = tip_target + as_vector(normal) * effector_length
    return effector_target, tip_target


def _basis(forward: np.ndarray, up: np.ndarray) -> Optional[np.ndarray]:
    """以 forward 为 Z 轴、up 确定 Y 轴的右手正交基（列向量），up 与 forward 平行时返回 None"""
    z = forward / np.linalg.norm(forward)
    x = np.cross(up, z)
    x_norm = np.linalg.norm(x)
    if x_norm < 1e-9:
        return None
    x = x / x_norm
    y = np.cross(z, x)
    return np.column_stack([x, y, z])


def look_rotation(direction: Sequence[float],
                  up: Sequence[float] = WORLD_UP,
                  forward_axis: Sequence[float] = (0.0, 0.0, 1.0),
                  up_axis: Sequence[float] = (0.0, 1.0, 0.0)) -> Optional[R]:
    """
    计算使局部 forward_axis 指向 direction、局部 up_axis 尽量朝向 up 的世界旋转

    :param direction: 目标朝向
    :param up: 世界参考上方向
    :param forward_axis: 段模型的局部前向轴
    :param up_axis: 段模型的局部上向轴（须与 forward_axis 正交）
    :return: 旋转；direction 为零向量时返回 None
    """
    direction = as_vector(direction)
    if np.linalg.norm(direction) < LENGTH_EPSILON:
        return None

    forward_axis = normalize_axis(forward_axis)
    local_basis = _basis(forward_axis, normalize_axis(up_axis))
    if local_basis is None:
        raise ValueError("forward_axis and up_axis must not be parallel")

    world_basis = _basis(direction, as_vector(up))
    if world_basis is None:
        # direction 与 up 平行：退化为 forward_axis 到 direction 的最短弧旋转
        rotation, _ = R.align_vectors(direction[np.newaxis, :], forward_axis[np.newaxis, :])
        return rotation

    return R.from_matrix(world_basis @ local_basis.T)


def bend_rotation(angle_deg: float, axis: Sequence[float]) -> R:
    """绕 axis 旋转 angle_deg 度"""
    return R.from_rotvec(np.deg2rad(angle_deg) * normalize_axis(axis))


def solve_triangle(a: float, b: float, c: float,
                   tolerance: float = 1e-9) -> Tuple[float, float]:
    """
    余弦定理求解三角形内角（度）

    :param a: Upper 段长
    :param b: Lower 段长
    :param c: Upper 到 effector_target 的距离
    :param tolerance: 余弦值超出 [-1, 1] 的容差，容差内的值被截断
    :return: (angle_b, angle_c)，angle_b 为 Upper 处内角，angle_c 为 Lower 处内角；
             三角形不成立（目标不可达或与 Upper 重合）时均为 NaN
    """
    if c <= LENGTH_EPSILON:
        return float('nan'), float('nan')

    cos_c = (a * a + b * b - c * c) / (2 * a * b)
    if abs(cos_c) > 1.0 + tolerance:
        return float('nan'), float('nan')
    cos_b = (c * c + a * a - b * b) / (2 * c * a)

    angle_b = np.degrees(np.arccos(np.clip(cos_b, -1.0, 1.0)))
    angle_c = np.degrees(np.arccos(np.clip(cos_c, -1.0, 1.0)))
    return float(angle_b), float(angle_c)
