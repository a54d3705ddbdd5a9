"""
四元数工具函数
内部统一使用 [w, x, y, z] 格式；scipy 的 Rotation 使用 [x, y, z, w] 格式
"""
import numpy as np
from scipy.spatial.transform import Rotation as R
from typing import Union


IDENTITY_QUATERNION = np.array([1.0, 0.0, 0.0, 0.0], dtype=np.float64)


def normalize_quaternion(quaternion: Union[np.ndarray, list, tuple]) -> np.ndarray:
    """
    归一化四元数

    :param quaternion: 四元数，格式为 [w, x, y, z]
    :return: 单位四元数
    """
    quaternion = np.asarray(quaternion, dtype=np.float64)

    if quaternion.shape != (4,):
        raise ValueError(f"Quaternion must be a 4-element array, got shape {quaternion.shape}")

    norm = np.linalg.norm(quaternion)
    if norm < 1e-10:
        raise ValueError(f"Quaternion norm too small: {norm}, cannot normalize")
    return quaternion / norm


def quaternion_to_rotation_matrix(quaternion: Union[np.ndarray, list, tuple]) -> np.ndarray:
    """
    将四元数转换为旋转矩阵

    :param quaternion: 四元数，格式为 [w, x, y, z] 或 (w, x, y, z)
    :return: 3x3 旋转矩阵
    """
    w, x, y, z = normalize_quaternion(quaternion)

    return np.array([
        [1 - 2 * (y * y + z * z),     2 * (x * y - w * z),     2 * (x * z + w * y)],
        [    2 * (x * y + w * z), 1 - 2 * (x * x + z * z),     2 * (y * z - w * x)],
        [    2 * (x * z - w * y),     2 * (y * z + w * x), 1 - 2 * (x * x + y * y)]
    ], dtype=np.float64)


def rotation_to_quaternion(rotation: R) -> np.ndarray:
    """scipy Rotation -> [w, x, y, z]，w 取非负以保证表示唯一"""
    x, y, z, w = rotation.as_quat()
    quat = np.array([w, x, y, z], dtype=np.float64)
    if quat[0] < 0.0:
        quat = -quat
    return quat
