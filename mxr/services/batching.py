"""
Fan-out/fan-in helper: fixed-size batches, bounded parallelism inside a batch,
sequential batches with a cooperative yield in between.
"""
from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, List, Optional, Sequence, TypeVar

T = TypeVar("T")
R = TypeVar("R")


async def run_in_batches(
    items: Sequence[T],
    worker: Callable[[T], Awaitable[R]],
    batch_size: int = 50,
    parallel_limit: int = 10,
    on_batch: Optional[Callable[[int, int, Optional[T]], None]] = None,
) -> List[R]:
    """
    items를 batch_size 단위로 나누어 처리합니다.

    Args:
        items: 처리할 항목들
        worker: 항목 하나를 처리하는 코루틴 함수 (예외를 던지지 않아야 함)
        batch_size: 배치 크기
        parallel_limit: 배치 내 동시 실행 수
        on_batch: 배치 완료 콜백 (total, processed, 마지막 항목)

    Returns:
        배치 순서대로 이어 붙인 결과 리스트
    """
    # Semaphore로 동시 실행 수 제한
    semaphore = asyncio.Semaphore(parallel_limit)

    async def bounded(item: T) -> R:
        async with semaphore:
            return await worker(item)

    results: List[R] = []
    total = len(items)
    for start in range(0, total, batch_size):
        batch = items[start:start + batch_size]
        results.extend(await asyncio.gather(*(bounded(item) for item in batch)))
        if on_batch:
            on_batch(total, min(start + batch_size, total), batch[-1] if batch else None)
        # 다음 배치 전에 이벤트 루프에 양보
        await asyncio.sleep(0)
    return results


__all__ = ["run_in_batches"]
