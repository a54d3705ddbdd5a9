"""
数据交换功能实现
骨骼定义加载、目标关键帧加载与插值、动画结果导出
"""
import json
import os
import numpy as np
from typing import Dict, List, Sequence, Tuple

from chain_ik.model import ANCHOR_NAMES, JointChain, JointNode, FixedJoint, SphericalJoint
from chain_ik.solver import SolveResult
from chain_ik.utils import rotation_to_quaternion


DEFAULT_NORMAL = [0.0, 1.0, 0.0]


def load_skeleton(json_path: str) -> Tuple[JointChain, Dict[str, JointNode]]:
    """
    从skeleton.json加载骨骼定义，构建场景图并组织关节链

    文件格式：
    {
        "root_name": "pivot",
        "joints": [{"name": ..., "type": "spherical" | "fixed", "offset": [x, y, z],
                    "parent": ..., "quaternion": [w, x, y, z]}],
        "anchors": {"pivot": ..., "upper": ..., "lower": ..., "effector": ..., "tip": ...}
    }
    anchors 缺省时，从根节点沿第一个子节点依次查找

    :param json_path: skeleton.json文件路径
    :return: (关节链, 关节名称到节点的映射字典)
    """
    with open(json_path, 'r', encoding='utf-8') as f:
        data = json.load(f)

    root_name = data['root_name']
    joints_data = data['joints']

    joint_map: Dict[str, JointNode] = {}

    for joint_data in joints_data:
        name = joint_data['name']
        joint_type = joint_data.get('type', 'spherical')
        offset = np.array(joint_data['offset'], dtype=np.float64)
        quat = joint_data.get('quaternion')
        if quat is not None:
            quat = np.array(quat, dtype=np.float64)

        if name in joint_map:
            raise ValueError(f"Duplicate joint name: {name}")

        if joint_type == 'fixed':
            joint = FixedJoint(name, offset, quat)
        elif joint_type == 'spherical':
            joint = SphericalJoint(name, offset, quat)
        else:
            raise ValueError(f"Unknown joint type: {joint_type}")

        joint_map[name] = joint

    # 建立父子关系
    for joint_data in joints_data:
        name = joint_data['name']
        parent_name = joint_data.get('parent')

        if parent_name is not None:
            if parent_name not in joint_map:
                raise ValueError(f"Parent '{parent_name}' not found for joint '{name}'")
            joint_map[parent_name].add_child(joint_map[name])

    if root_name not in joint_map:
        raise ValueError(f"Root node '{root_name}' not found")
    root = joint_map[root_name]

    anchors = data.get('anchors')
    if anchors is None:
        chain = JointChain.from_root(root)
    else:
        nodes = []
        for anchor in ANCHOR_NAMES:
            joint_name = anchors.get(anchor)
            if joint_name is None:
                nodes.append(None)
            elif joint_name not in joint_map:
                raise ValueError(f"Anchor '{anchor}' refers to unknown joint '{joint_name}'")
            else:
                nodes.append(joint_map[joint_name])
        chain = JointChain(*nodes)
        chain.check_hierarchy()

    root.update_global_transform()

    return chain, joint_map


def load_targets(json_path: str, default_normal: Sequence[float] = DEFAULT_NORMAL) -> List[Dict]:
    """
    从targets.json加载目标轨迹

    :param json_path: targets.json文件路径
    :param default_normal: 关键帧未给出 normal 时使用的末段朝向
    :return: 关键帧列表，每个元素为 {"frame": int, "pos": [x,y,z], "normal": [x,y,z]}
    """
    with open(json_path, 'r', encoding='utf-8') as f:
        data = json.load(f)

    keyframes = []
    for item in data:
        keyframe = {
            'frame': int(item['frame']),
            'pos': np.array(item['pos'], dtype=np.float64),
            'normal': np.array(item.get('normal', default_normal), dtype=np.float64)
        }
        keyframes.append(keyframe)

    if not keyframes:
        raise ValueError(f"No keyframes in {json_path}")

    keyframes.sort(key=lambda kf: kf['frame'])

    return keyframes


def interpolate_targets(keyframes: List[Dict], frame: int) -> Tuple[np.ndarray, np.ndarray]:
    """
    在关键帧之间进行线性插值，生成目标位置与末段朝向

    :param keyframes: 关键帧列表（按帧号升序）
    :param frame: 当前帧号
    :return: (target, normal)
    """
    if frame <= keyframes[0]['frame']:
        kf = keyframes[0]
        return kf['pos'].copy(), kf['normal'].copy()

    if frame >= keyframes[-1]['frame']:
        kf = keyframes[-1]
        return kf['pos'].copy(), kf['normal'].copy()

    start_kf = keyframes[0]
    end_kf = keyframes[-1]

    for i in range(len(keyframes) - 1):
        if keyframes[i]['frame'] <= frame < keyframes[i+1]['frame']:
            start_kf = keyframes[i]
            end_kf = keyframes[i+1]
            break

    start_frame = start_kf['frame']
    end_frame = end_kf['frame']

    if end_frame == start_frame:
        alpha = 0.0
    else:
        alpha = (frame - start_frame) / (end_frame - start_frame)

    target = (1.0 - alpha) * start_kf['pos'] + alpha * end_kf['pos']
    # normal 允许非单位长度，直接线性插值
    normal = (1.0 - alpha) * start_kf['normal'] + alpha * end_kf['normal']

    return target, normal


def extract_frame(frame: int, chain: JointChain, result: SolveResult, target: np.ndarray) -> Dict:
    """提取当前关节链各锚点的局部姿态，存为字典"""
    frame_data = {
        'frame': frame,
        'reachable': bool(result.reachable),
        'distance': chain.tip_distance(target),
        'joints': {}
    }

    for node in chain.anchors()[:4]:
        rotation = node.local_rotation
        quat = rotation_to_quaternion(rotation)
        euler_deg = rotation.as_euler('XYZ', degrees=True)
        frame_data['joints'][node.name] = {
            'quaternion': [float(q) for q in quat],
            'euler': [float(e) for e in euler_deg]
        }

    return frame_data


def export_animation(frames: List[Dict], output_path: str):
    """
    导出动画数据到animation.json

    :param frames: extract_frame() 生成的逐帧数据
    :param output_path: 输出文件路径
    """
    os.makedirs(os.path.dirname(os.path.abspath(output_path)), exist_ok=True)

    output = {'frames': frames}
    with open(output_path, 'w', encoding='utf-8') as f:
        json.dump(output, f, indent=2, ensure_ascii=False)
