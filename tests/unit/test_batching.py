"""run_in_batches 테스트"""

import asyncio

from mxr.services.batching import run_in_batches


class TestRunInBatches:
    def test_results_keep_input_order(self):
        async def worker(item):
            # 뒤 항목이 먼저 끝나도 순서는 입력 기준
            await asyncio.sleep(0.001 * (10 - item))
            return item * item

        results = asyncio.run(run_in_batches(list(range(10)), worker, batch_size=4, parallel_limit=2))

        assert results == [item * item for item in range(10)]

    def test_parallel_limit(self):
        """배치 안에서도 동시 실행 수는 parallel_limit 이하"""
        state = {"running": 0, "peak": 0}

        async def worker(item):
            state["running"] += 1
            state["peak"] = max(state["peak"], state["running"])
            await asyncio.sleep(0.001)
            state["running"] -= 1
            return item

        asyncio.run(run_in_batches(list(range(20)), worker, batch_size=10, parallel_limit=3))

        assert state["peak"] == 3

    def test_progress_callback(self):
        progress = []

        async def worker(item):
            return item

        asyncio.run(run_in_batches(
            ["a", "b", "c", "d", "e"], worker, batch_size=2,
            on_batch=lambda total, processed, last: progress.append((total, processed, last)),
        ))

        assert progress == [(5, 2, "b"), (5, 4, "d"), (5, 5, "e")]

    def test_empty_input(self):
        async def worker(item):
            raise AssertionError("not called")

        assert asyncio.run(run_in_batches([], worker)) == []
