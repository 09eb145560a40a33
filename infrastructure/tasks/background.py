"""
进程内后台任务

请求处理完毕后仍需完成的副作用（如把客户资料同步到 Shopify）在这里以
detached asyncio task 运行：任务对象被集合持有直至结束，异常记录日志不外抛，
应用关闭时等待剩余任务完成。
"""
from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Optional

from core.logging_config import get_logger

logger = get_logger(__name__)


class BackgroundTaskRunner:

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task] = set()

    def __len__(self) -> int:
        return len(self._tasks)

    def spawn(self, coro: Awaitable[Any], *, name: str, failure_event: str = "background_task_failed", **log_context: Any) -> asyncio.Task:
        """启动后台任务；失败时以 failure_event 记录 error 日志"""

        async def _run() -> Any:
            try:
                return await coro
            except asyncio.CancelledError:
                logger.warning("background_task_cancelled", task=name, **log_context)
                raise
            except Exception as exc:
                logger.error(failure_event, task=name, error=str(exc), exc_info=True, **log_context)
                return None

        task = asyncio.create_task(_run(), name=name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def drain(self, timeout: Optional[float] = 10.0) -> None:
        """等待所有后台任务结束；超时后取消剩余任务"""
        if not self._tasks:
            return
        pending = list(self._tasks)
        logger.info("background_tasks_draining", count=len(pending))
        done, still_pending = await asyncio.wait(pending, timeout=timeout)
        for task in still_pending:
            task.cancel()
        if still_pending:
            await asyncio.gather(*still_pending, return_exceptions=True)
            logger.warning("background_tasks_cancelled", count=len(still_pending))
