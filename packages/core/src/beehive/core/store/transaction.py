"""SQLite 原子事务封装

多语句操作（submit / approve / reject / release 等）在同一个
BEGIN IMMEDIATE 事务内提交：立即获取写锁，跨进程的并发写者在
busy_timeout 内排队，失败时整体回滚，不留下部分写入。
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import aiosqlite


@asynccontextmanager
async def immediate_transaction(
    conn: aiosqlite.Connection,
) -> AsyncIterator[aiosqlite.Connection]:
    """在 BEGIN IMMEDIATE 事务内执行代码块

    正常退出时提交；代码块抛出任何异常时回滚并重新抛出。

    Args:
        conn: 数据库连接（需在同一连接上操作以保证事务性）
    """
    await conn.execute("BEGIN IMMEDIATE")
    try:
        yield conn
    except BaseException:
        await conn.rollback()
        raise
    else:
        await conn.commit()
