"""
模型层 (Model Layer)
场景图管理，负责维护关节节点的父子层级与全局变换，以及五锚点关节链的组织

导出：
- JointNode: 抽象基类，定义所有关节的通用接口
- FixedJoint: 固定关节，姿态恒定，用于结构连接或末端点
- SphericalJoint: 球形关节，姿态可由外部任意写入
- JointChain: Pivot -> Upper -> Lower -> Effector -> Tip 五锚点链
"""

from .joint import (
    JointNode,
    FixedJoint,
    SphericalJoint
)
from .chain import ANCHOR_NAMES, JointChain

__all__ = [
    'JointNode',
    'FixedJoint',
    'SphericalJoint',
    'ANCHOR_NAMES',
    'JointChain'
]
