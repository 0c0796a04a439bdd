import asyncio
import logging
from typing import Callable

from starlette.concurrency import run_in_threadpool

logger = logging.getLogger(__name__)


async def run_periodically(name: str, interval_seconds: float, job: Callable[[], object]) -> None:
    """Run ``job`` in the threadpool every ``interval_seconds`` until cancelled.

    A failing run is logged and the loop keeps going.
    """
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            result = await run_in_threadpool(job)
        except Exception:
            logger.exception('Periodic task %s failed', name)
            continue
        logger.debug('Periodic task %s finished: %s', name, result)


def start_periodic(name: str, interval_seconds: float, job: Callable[[], object]) -> asyncio.Task:
    return asyncio.create_task(run_periodically(name, interval_seconds, job), name=name)


async def cancel_tasks(tasks: list[asyncio.Task]) -> None:
    for task in tasks:
        task.cancel()
    for task in tasks:
        try:
            await task
        except asyncio.CancelledError:
            pass
        except Exception:
            logger.exception('Periodic task %s ended with an error', task.get_name())
    tasks.clear()
