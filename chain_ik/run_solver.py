import json
import logging
import os
import sys
import time

from chain_ik.data_io import (
    DEFAULT_NORMAL,
    load_skeleton,
    load_targets,
    interpolate_targets,
    extract_frame,
    export_animation
)
from chain_ik.solver import ChainSolver, DegenerateChainError


def _resolve(base_dir, path):
    if path is None or os.path.isabs(path):
        return path
    return os.path.join(base_dir, path)


def run_solver(config_path="config.json"):
    """
    逐帧求解目标轨迹并导出动画

    :param config_path: 配置文件路径，其中的相对路径相对于配置文件所在目录
    :return: 0 表示成功，非零表示失败
    """
    # 1. 加载配置
    if not os.path.exists(config_path):
        print(f"❌ 找不到配置文件: {config_path}")
        return 1

    with open(config_path, 'r', encoding='utf-8') as f:
        config = json.load(f)

    base_dir = os.path.dirname(os.path.abspath(config_path))

    print("----------- Chain IK Solver Headless -----------")
    print(f"配置加载: {config_path}")

    skeleton_path = _resolve(base_dir, config.get('skeleton_path'))
    targets_path = _resolve(base_dir, config.get('targets_path'))
    output_path = _resolve(base_dir, config.get('output_path', 'animation.json'))

    if not skeleton_path or not targets_path:
        print("❌ 配置缺少 skeleton_path 或 targets_path")
        return 1

    solver_params = {
        'bend_axis': config.get('bend_axis', [1.0, 0.0, 0.0]),
        'forward_axis': config.get('forward_axis', [0.0, 0.0, 1.0]),
        'up_axis': config.get('up_axis', [0.0, 1.0, 0.0]),
        'world_up': config.get('world_up', [0.0, 1.0, 0.0])
    }
    default_normal = config.get('normal', DEFAULT_NORMAL)

    # 2. 加载骨骼并构建关节链
    print(f"正在加载骨骼: {skeleton_path} ...")
    try:
        chain, _ = load_skeleton(skeleton_path)
    except (OSError, KeyError, ValueError) as e:
        print(f"❌ 骨骼加载失败: {e}")
        return 1

    missing = chain.missing_anchors()
    if missing:
        print(f"❌ 请指定锚点: {', '.join(missing)}")
        return 1
    print(f"关节链: {chain}")

    # 3. 初始化求解器（静止姿态计算段长）
    try:
        solver = ChainSolver(chain, normal=default_normal, **solver_params)
    except DegenerateChainError as e:
        print(f"❌ 关节链无效: {e}")
        return 1
    except ValueError as e:
        print(f"❌ 求解参数无效: {e}")
        return 1
    print("段长: " + ", ".join(f"{k}={v:.4f}" for k, v in solver.lengths._asdict().items()))

    # 4. 加载目标轨迹
    print(f"正在加载目标轨迹: {targets_path} ...")
    try:
        keyframes = load_targets(targets_path, default_normal)
    except (OSError, KeyError, ValueError) as e:
        print(f"❌ 目标轨迹加载失败: {e}")
        return 1
    total_frames = keyframes[-1]['frame']
    print(f"轨迹加载成功，共 {len(keyframes)} 个关键帧，总长 {total_frames} 帧")

    # 5. 逐帧求解
    start_time = time.time()
    solved_frames = []
    unreachable = 0

    for frame in range(total_frames + 1):
        if frame % 10 == 0:
            sys.stdout.write(f"\r进度: {frame}/{total_frames}")
            sys.stdout.flush()

        target, normal = interpolate_targets(keyframes, frame)
        result = solver.solve(target, normal)
        if not result.reachable:
            unreachable += 1

        solved_frames.append(extract_frame(frame, chain, result, target))

    print()
    duration = time.time() - start_time
    print(f"求解完成，耗时: {duration:.2f} 秒")
    if unreachable:
        print(f"⚠️ {unreachable} 帧目标不可达，Upper/Lower 保持上一帧姿态")

    # 6. 导出结果
    print(f"正在导出到: {output_path} ...")
    export_animation(solved_frames, output_path)
    print("✅ 任务完成！")
    return 0


def main(argv=None):
    argv = sys.argv[1:] if argv is None else argv
    if os.environ.get('CHAIN_IK_DEBUG'):
        logging.basicConfig(level=logging.DEBUG)
    if argv:
        return run_solver(argv[0])
    return run_solver()


if __name__ == "__main__":
    sys.exit(main())
