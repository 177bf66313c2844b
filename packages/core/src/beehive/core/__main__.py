"""CLI 入口模块 -- python -m beehive.core <command>

支持的命令：
  init-project <name> [repo]  创建项目并打印 bootstrap admin 密钥
  dump <project>              以 JSON 打印项目导出
"""

import asyncio
import sys

from .config import get_store_backend
from .exceptions import BeehiveError

_USAGE = """用法: python -m beehive.core <command>
命令:
  init-project <name> [repo]  创建项目并打印 bootstrap admin 密钥
  dump <project>              以 JSON 打印项目导出"""


def main() -> None:
    """CLI 主入口"""
    if len(sys.argv) < 3:
        print(_USAGE)
        sys.exit(1)

    command, name = sys.argv[1], sys.argv[2]

    try:
        if command == "init-project":
            repo = sys.argv[3] if len(sys.argv) > 3 else ""
            asyncio.run(init_project(name, repo))
        elif command == "dump":
            asyncio.run(dump_project(name))
        else:
            print(f"未知命令: {command}")
            print("可用命令: init-project, dump")
            sys.exit(1)
    except BeehiveError as exc:
        print(f"错误: {exc.message}", file=sys.stderr)
        sys.exit(2)


async def init_project(name: str, repo: str = "") -> None:
    """创建项目，明文密钥只打印这一次"""
    from .store import create_store

    store = await create_store()
    try:
        _, key = await store.create_project(name, repo=repo)
    finally:
        await store.close()

    print(f"存储后端: {get_store_backend()}")
    print(f"项目已创建: {name}")
    print(f"Admin key: {key}")


async def dump_project(name: str) -> None:
    """打印项目导出"""
    from .store import create_store

    store = await create_store()
    try:
        dump = await store.dump_project(name)
    finally:
        await store.close()

    print(dump.model_dump_json(indent=2))


if __name__ == "__main__":
    main()
