"""CLI 入口模块 -- python -m batchkeeper.core <command>

支持的命令：
  inspect <state-file>        查看状态文件中的批次进度与任务状态
  dry-run <definition-file>   使用 Echo 协作方完整执行一次批次
"""

import asyncio
import sys

from .exceptions import BatchError

USAGE = """用法: python -m batchkeeper.core <command> <file>
命令:
  inspect <state-file>        查看状态文件中的批次进度与任务状态
  dry-run <definition-file>   使用 Echo 协作方完整执行一次批次"""


def main(argv: list[str] | None = None) -> None:
    """CLI 主入口"""
    args = sys.argv[1:] if argv is None else argv
    if len(args) < 2:
        print(USAGE)
        sys.exit(1)

    command, path = args[0], args[1]

    if command == "inspect":
        exit_code = asyncio.run(inspect_state(path))
    elif command == "dry-run":
        exit_code = asyncio.run(dry_run(path))
    else:
        print(f"未知命令: {command}")
        print("可用命令: inspect, dry-run")
        exit_code = 1

    if exit_code:
        sys.exit(exit_code)


async def inspect_state(path: str) -> int:
    """打印批次进度与每个任务的状态"""
    from .store import JsonStateStore

    try:
        batch = await JsonStateStore().load(path)
    except BatchError as e:
        print(f"读取失败: {e.message}")
        return 1

    progress = batch.progress()
    print(f"批次: {batch.name} ({batch.batch_id})")
    print(
        f"进度: {progress.percent:.1f}% "
        f"(完成 {progress.completed} / 失败 {progress.failed} / "
        f"跳过 {progress.skipped} / 待执行 {progress.pending} / 共 {progress.total})"
    )
    for task in batch.tasks:
        line = f"  [{task.id}] {task.status:<10} {task.display_name}"
        if task.error_message:
            line += f" -- {task.error_message}"
        print(line)
    return 0


async def dry_run(path: str) -> int:
    """加载定义文件并以 Echo 协作方执行全部任务"""
    from .collaborators import create_echo_collaborators
    from .config import load_session_config
    from .session import BatchSession
    from .store import create_batch_stores

    stores = await create_batch_stores(None)
    session = BatchSession(create_echo_collaborators(), stores, load_session_config())

    loaded = await session.load_batch(path)
    if not loaded.success:
        print(f"加载失败: {loaded.error}")
        return 1
    print(loaded.message)

    outcome = await session.run_all()
    if not outcome.success:
        print(f"执行失败: {outcome.error}")
        return 1

    print(
        f"执行 {outcome.tasks_executed} 次，完成 {outcome.completed_tasks}，"
        f"失败 {outcome.failed_tasks}，待执行 {outcome.pending_tasks}"
    )
    print(f"运行日志: {outcome.log_path}")
    print(f"状态文件: {outcome.state_path}")
    return 0


if __name__ == "__main__":
    main()
