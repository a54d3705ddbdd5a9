"""
五锚点关节链：Pivot -> Upper -> Lower -> Effector -> Tip
负责锚点的组织与校验，并向可视化/诊断层提供只读查询接口
"""
import numpy as np
from typing import Dict, List, Optional, Sequence

from .joint import JointNode, FixedJoint, SphericalJoint


ANCHOR_NAMES = ('pivot', 'upper', 'lower', 'effector', 'tip')


class JointChain:
    """
    关节链的锚点集合。锚点由外部场景图持有，链只保存引用。
    """

    def __init__(self,
                 pivot: Optional[JointNode] = None,
                 upper: Optional[JointNode] = None,
                 lower: Optional[JointNode] = None,
                 effector: Optional[JointNode] = None,
                 tip: Optional[JointNode] = None):
        self.pivot = pivot
        self.upper = upper
        self.lower = lower
        self.effector = effector
        self.tip = tip

    @classmethod
    def from_positions(cls, positions: Sequence[Sequence[float]],
                       names: Sequence[str] = ANCHOR_NAMES) -> 'JointChain':
        """
        由五个锚点的世界坐标（静止姿态）构建一条父子串联的链。
        所有节点初始旋转为单位旋转，因此局部位移即为相邻锚点的坐标差。

        :param positions: 五个锚点的世界坐标，顺序为 Pivot, Upper, Lower, Effector, Tip
        :param names: 五个节点的名称
        :return: JointChain
        """
        points = np.asarray(positions, dtype=np.float64)
        if points.shape != (5, 3):
            raise ValueError(f"Expected 5 anchor positions of shape (5, 3), got {points.shape}")

        # Pivot 的位移相对世界原点
        nodes: List[JointNode] = [SphericalJoint(names[0], points[0])]
        for i in range(1, 4):
            node = SphericalJoint(names[i], points[i] - points[i - 1])
            nodes[-1].add_child(node)
            nodes.append(node)
        tip = FixedJoint(names[4], points[4] - points[3])
        nodes[-1].add_child(tip)
        nodes.append(tip)

        chain = cls(*nodes)
        chain.refresh()
        return chain

    @classmethod
    def from_root(cls, root: JointNode) -> 'JointChain':
        """
        从根节点开始，沿每一级的第一个子节点依次查找 Upper, Lower, Effector, Tip

        :param root: 作为 Pivot 的节点
        :return: JointChain
        """
        nodes = [root]
        for _ in range(4):
            if not nodes[-1].children:
                raise ValueError(
                    f"Could not find required transforms below '{nodes[-1].name}', "
                    "please assign anchors manually."
                )
            nodes.append(nodes[-1].children[0])
        return cls(*nodes)

    def anchors(self) -> List[Optional[JointNode]]:
        return [self.pivot, self.upper, self.lower, self.effector, self.tip]

    def missing_anchors(self) -> List[str]:
        """返回尚未指定的锚点名称（按链上顺序）"""
        return [name for name, node in zip(ANCHOR_NAMES, self.anchors()) if node is None]

    def is_complete(self) -> bool:
        return not self.missing_anchors()

    def refresh(self):
        """从 Pivot 所在场景图的根节点刷新全部 global_transform"""
        if self.pivot is not None:
            self.pivot.root().update_global_transform()

    def positions(self) -> Dict[str, np.ndarray]:
        """各锚点当前的世界坐标"""
        return {name: node.world_position
                for name, node in zip(ANCHOR_NAMES, self.anchors()) if node is not None}

    def polyline(self) -> np.ndarray:
        """链的折线顶点，5x3"""
        missing = self.missing_anchors()
        if missing:
            raise ValueError(f"Chain is missing anchors: {', '.join(missing)}")
        return np.array([node.world_position for node in self.anchors()])

    def check_hierarchy(self):
        """
        校验已指定的锚点依次构成同一条祖先路径（前一个锚点是后一个锚点的祖先）

        :raises ValueError: 某个锚点不在前一个锚点的子树中
        """
        assigned = [(name, node) for name, node in zip(ANCHOR_NAMES, self.anchors()) if node is not None]
        for (parent_name, ancestor), (child_name, node) in zip(assigned, assigned[1:]):
            current = node.parent
            while current is not None and current is not ancestor:
                current = current.parent
            if current is None:
                raise ValueError(
                    f"Anchor '{child_name}' ({node.name}) is not a descendant of "
                    f"'{parent_name}' ({ancestor.name})"
                )

    def tip_distance(self, target: Sequence[float]) -> float:
        """Tip 到目标点的距离"""
        if self.tip is None:
            raise ValueError("Chain is missing anchors: tip")
        return float(np.linalg.norm(np.asarray(target, dtype=np.float64) - self.tip.world_position))

    def __repr__(self):
        names = [node.name if node is not None else None for node in self.anchors()]
        return f"<JointChain: {' -> '.join(str(n) for n in names)}>"
