import json

import numpy as np
import pytest

from chain_ik.data_io import (
    load_skeleton,
    load_targets,
    interpolate_targets,
    extract_frame,
    export_animation
)
from chain_ik.run_solver import run_solver
from chain_ik.solver import ChainSolver
from conftest import STRAIGHT_POSE


SKELETON = {
    "root_name": "shoulder_yaw",
    "joints": [
        {"name": "shoulder_yaw", "type": "spherical", "offset": [0, 0, 0], "parent": None},
        {"name": "shoulder", "type": "spherical", "offset": [0, 0, 1], "parent": "shoulder_yaw"},
        {"name": "elbow", "type": "spherical", "offset": [0, 0, 2], "parent": "shoulder"},
        {"name": "wrist", "type": "spherical", "offset": [0, 0, 2], "parent": "elbow"},
        {"name": "finger", "type": "fixed", "offset": [0, 0, 1], "parent": "wrist"}
    ]
}

TARGETS = [
    {"frame": 20, "pos": [1.0, 1.0, 3.0], "normal": [0.0, 0.0, 1.0]},
    {"frame": 0, "pos": [0.0, 0.0, 4.0]},
]


def write_json(path, data):
    path.write_text(json.dumps(data), encoding='utf-8')
    return str(path)


def test_load_skeleton_discovers_chain(tmp_path):
    chain, joint_map = load_skeleton(write_json(tmp_path / "skeleton.json", SKELETON))

    assert chain.is_complete()
    assert chain.effector is joint_map['wrist']
    np.testing.assert_allclose(chain.polyline(), STRAIGHT_POSE)


def test_load_skeleton_explicit_anchors(tmp_path):
    data = dict(SKELETON, anchors={"pivot": "shoulder_yaw", "upper": "shoulder",
                                   "lower": "elbow", "effector": "wrist"})
    chain, _ = load_skeleton(write_json(tmp_path / "skeleton.json", data))
    assert chain.missing_anchors() == ['tip']


def test_load_skeleton_rest_rotation(tmp_path):
    data = json.loads(json.dumps(SKELETON))
    # 绕 Y 轴 90 度
    data['joints'][0]['quaternion'] = [np.cos(np.pi / 4), 0.0, np.sin(np.pi / 4), 0.0]
    chain, _ = load_skeleton(write_json(tmp_path / "skeleton.json", data))
    np.testing.assert_allclose(chain.tip.world_position, [6, 0, 0], atol=1e-12)


@pytest.mark.parametrize("mutate, message", [
    (lambda d: d['joints'][1].update(type='prismatic'), "Unknown joint type"),
    (lambda d: d['joints'][1].update(parent='missing'), "Parent 'missing'"),
    (lambda d: d.update(root_name='missing'), "Root node"),
    (lambda d: d.update(anchors={"pivot": "missing"}), "unknown joint"),
])
def test_load_skeleton_errors(tmp_path, mutate, message):
    data = json.loads(json.dumps(SKELETON))
    mutate(data)
    with pytest.raises(ValueError, match=message):
        load_skeleton(write_json(tmp_path / "skeleton.json", data))


def test_load_targets_sorted_with_default_normal(tmp_path):
    keyframes = load_targets(write_json(tmp_path / "targets.json", TARGETS))
    assert [kf['frame'] for kf in keyframes] == [0, 20]
    np.testing.assert_allclose(keyframes[0]['normal'], [0, 1, 0])


def test_load_targets_empty(tmp_path):
    with pytest.raises(ValueError):
        load_targets(write_json(tmp_path / "targets.json", []))


def test_interpolate_targets(tmp_path):
    keyframes = load_targets(write_json(tmp_path / "targets.json", TARGETS))

    target, normal = interpolate_targets(keyframes, 10)
    np.testing.assert_allclose(target, [0.5, 0.5, 3.5])
    np.testing.assert_allclose(normal, [0.0, 0.5, 0.5])

    target, normal = interpolate_targets(keyframes, -5)
    np.testing.assert_allclose(target, [0, 0, 4])
    target, normal = interpolate_targets(keyframes, 99)
    np.testing.assert_allclose(target, [1, 1, 3])
    np.testing.assert_allclose(normal, [0, 0, 1])


def test_extract_and_export(tmp_path, straight_chain):
    solver = ChainSolver(straight_chain)
    target = np.array([0.0, 0.0, 4.0])
    result = solver.solve(target, [0, 1, 0])

    frame = extract_frame(3, straight_chain, result, target)
    assert frame['frame'] == 3
    assert frame['reachable'] is True
    assert frame['distance'] == pytest.approx(0.0, abs=1e-9)
    assert set(frame['joints']) == {'pivot', 'upper', 'lower', 'effector'}
    assert len(frame['joints']['upper']['quaternion']) == 4
    assert frame['joints']['upper']['quaternion'][0] >= 0.0

    output_path = tmp_path / "out" / "animation.json"
    export_animation([frame], str(output_path))
    exported = json.loads(output_path.read_text(encoding='utf-8'))
    assert exported['frames'][0]['joints']['lower'] == frame['joints']['lower']


def test_run_solver_end_to_end(tmp_path):
    write_json(tmp_path / "skeleton.json", SKELETON)
    write_json(tmp_path / "targets.json", TARGETS)
    config_path = write_json(tmp_path / "config.json", {
        "skeleton_path": "skeleton.json",
        "targets_path": "targets.json",
        "output_path": "result/animation.json"
    })

    assert run_solver(config_path) == 0

    exported = json.loads((tmp_path / "result" / "animation.json").read_text(encoding='utf-8'))
    assert len(exported['frames']) == 21
    assert all(frame['reachable'] for frame in exported['frames'])
    assert set(exported['frames'][0]['joints']) == {'shoulder_yaw', 'shoulder', 'elbow', 'wrist'}


def test_run_solver_missing_config(tmp_path):
    assert run_solver(str(tmp_path / "missing.json")) == 1


def test_run_solver_degenerate_chain(tmp_path):
    data = json.loads(json.dumps(SKELETON))
    data['joints'][2]['offset'] = [0, 0, 0]
    write_json(tmp_path / "skeleton.json", data)
    write_json(tmp_path / "targets.json", TARGETS)
    config_path = write_json(tmp_path / "config.json", {
        "skeleton_path": "skeleton.json",
        "targets_path": "targets.json"
    })

    assert run_solver(config_path) == 1


def test_load_skeleton_rejects_anchors_off_one_path(tmp_path):
    data = json.loads(json.dumps(SKELETON))
    data['joints'].append({"name": "thumb", "type": "spherical", "offset": [1, 0, 0], "parent": "elbow"})
    data['anchors'] = {"pivot": "shoulder_yaw", "upper": "shoulder", "lower": "elbow",
                       "effector": "thumb", "tip": "finger"}
    with pytest.raises(ValueError, match="tip"):
        load_skeleton(write_json(tmp_path / "skeleton.json", data))


def test_load_targets_custom_default_normal(tmp_path):
    keyframes = load_targets(write_json(tmp_path / "targets.json", TARGETS), default_normal=[1, 0, 0])
    np.testing.assert_allclose(keyframes[0]['normal'], [1, 0, 0])
    # 关键帧自带的 normal 不受影响
    np.testing.assert_allclose(keyframes[1]['normal'], [0, 0, 1])


def test_run_solver_uses_configured_normal(tmp_path):
    write_json(tmp_path / "skeleton.json", SKELETON)
    write_json(tmp_path / "targets.json", [{"frame": 0, "pos": [0.0, 0.0, 4.0]}])

    # normal=(0,0,1) 时 effector_target=(0,0,5)，手臂完全伸直
    config_path = write_json(tmp_path / "config.json", {
        "skeleton_path": "skeleton.json",
        "targets_path": "targets.json",
        "output_path": "straight.json",
        "normal": [0.0, 0.0, 1.0]
    })
    assert run_solver(config_path) == 0
    joints = json.loads((tmp_path / "straight.json").read_text(encoding='utf-8'))['frames'][0]['joints']
    np.testing.assert_allclose(joints['shoulder']['quaternion'], [1, 0, 0, 0], atol=1e-9)
    np.testing.assert_allclose(joints['elbow']['quaternion'], [1, 0, 0, 0], atol=1e-9)

    # 缺省 normal=(0,1,0) 时手臂弯曲
    config_path = write_json(tmp_path / "config.json", {
        "skeleton_path": "skeleton.json",
        "targets_path": "targets.json",
        "output_path": "bent.json"
    })
    assert run_solver(config_path) == 0
    joints = json.loads((tmp_path / "bent.json").read_text(encoding='utf-8'))['frames'][0]['joints']
    assert joints['elbow']['quaternion'][0] < 0.99


def test_run_solver_rejects_fixed_upper(tmp_path):
    data = json.loads(json.dumps(SKELETON))
    data['joints'][1]['type'] = 'fixed'
    write_json(tmp_path / "skeleton.json", data)
    write_json(tmp_path / "targets.json", TARGETS)
    config_path = write_json(tmp_path / "config.json", {
        "skeleton_path": "skeleton.json",
        "targets_path": "targets.json"
    })

    assert run_solver(config_path) == 1
    assert not (tmp_path / "animation.json").exists()
