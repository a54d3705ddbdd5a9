"""
关节节点层次结构实现
链上每个锚点（Pivot / Upper / Lower / Effector / Tip）都是场景图中的一个节点，
节点保存相对父级的静态位移与局部旋转，global_transform 由根节点向下递归刷新。
"""
import numpy as np
from abc import ABC, abstractmethod
from typing_extensions import override
from scipy.spatial.transform import Rotation as R
from typing import Optional, List

from chain_ik.utils import (
    IDENTITY_QUATERNION,
    normalize_quaternion,
    quaternion_to_rotation_matrix,
    rotation_to_quaternion
)


class JointNode(ABC):
    """
    所有关节类型的抽象基类，提供场景图读写接口。
    """

    def __init__(self, name: str, offset: np.ndarray):
        """
        初始化关节节点

        :param name: 关节名称
        :param offset: 相对父级的静态位移 (Vec3)
        """
        self.name = name
        self.parent: Optional['JointNode'] = None
        self.children: List['JointNode'] = []
        self.local_offset: np.ndarray = np.asarray(offset, dtype=np.float64)
        self.global_transform: np.ndarray = np.identity(4, dtype=np.float64)

    def add_child(self, child: 'JointNode'):
        """添加子节点，设置父子关系"""
        if child.parent is not None:
            raise ValueError(f"Joint '{child.name}' already has parent '{child.parent.name}'")
        child.parent = self
        self.children.append(child)

    @abstractmethod
    def get_local_matrix(self) -> np.ndarray:
        """
        根据当前内部状态计算局部变换矩阵。

        :return: 4x4 局部变换矩阵
        """
        pass

    def set_local_rotation(self, rotation: R):
        """
        写入相对父级的旋转。默认不可写，由可旋转的关节类型重写。

        :param rotation: 局部旋转
        """
        raise TypeError(f"Joint '{self.name}' has a fixed orientation")

    def set_world_rotation(self, rotation: R):
        """
        写入世界坐标系下的旋转：换算为局部旋转后交给 set_local_rotation()
        要求父节点的 global_transform 已是最新

        :param rotation: 世界旋转
        """
        if self.parent is None:
            self.set_local_rotation(rotation)
        else:
            self.set_local_rotation(self.parent.world_rotation.inv() * rotation)

    @property
    def local_rotation(self) -> R:
        return R.from_matrix(self.get_local_matrix()[:3, :3])

    @property
    def world_rotation(self) -> R:
        return R.from_matrix(self.global_transform[:3, :3])

    @property
    def world_position(self) -> np.ndarray:
        return self.global_transform[:3, 3].copy()

    def update_global_transform(self):
        """
        递归更新此关节及其所有子关节的 global_transform。
        使用多态特性调用 get_local_matrix()。
        """
        local_transform = self.get_local_matrix()

        if self.parent is None:
            self.global_transform = local_transform
        else:
            # global = parent_global @ local
            self.global_transform = self.parent.global_transform @ local_transform

        for child in self.children:
            child.update_global_transform()

    def root(self) -> 'JointNode':
        node = self
        while node.parent is not None:
            node = node.parent
        return node

    def __repr__(self):
        return f"<{self.__class__.__name__}: {self.name}>"


class FixedJoint(JointNode):
    """
    固定关节 - 姿态恒定的结构连接或末端点（Tip）
    quaternion 表示固定的本地旋转姿态（[w, x, y, z]）
    """

    def __init__(self, name: str, offset: np.ndarray, quaternion: Optional[np.ndarray] = None):
        """
        初始化固定关节

        :param name: 关节名称
        :param offset: 相对父级的静态位移 (Vec3)
        :param quaternion: 本地旋转（[w, x, y, z]），None 表示无旋转
        """
        super().__init__(name, offset)
        if quaternion is None:
            self.quaternion = IDENTITY_QUATERNION.copy()
        else:
            self.quaternion = normalize_quaternion(quaternion)

    def get_local_matrix(self) -> np.ndarray:
        """先旋转，再平移（平移为 local_offset）"""
        local_transform = np.identity(4, dtype=np.float64)
        local_transform[:3, :3] = quaternion_to_rotation_matrix(self.quaternion)
        local_transform[:3, 3] = self.local_offset
        return local_transform


class SphericalJoint(FixedJoint):
    """
    球形关节 - 可在任意方向旋转，姿态由外部（求解器、交互输入）直接写入
    """

    @override
    def set_local_rotation(self, rotation: R):
        self.quaternion = rotation_to_quaternion(rotation)
