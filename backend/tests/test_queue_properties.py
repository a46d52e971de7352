# test_queue_properties.py
"""
Property-based tests for the operation queue and retry policy.

Invariants under test:
1. list_all returns entries in enqueue order, whatever the clock does
2. retry_count never exceeds max_retries
3. an entry is failed exactly when its retry budget is spent
4. no entry is sent more than max_retries times
5. accepted entries leave the queue
"""

import asyncio
from datetime import datetime, timedelta, timezone

import httpx
from hypothesis import given, settings, strategies as st

from shopsync.queue import EntryStatus, OfflineFacades, OperationQueue
from shopsync.storage import DurableStore
from shopsync.sync import ReplayClient, Synchronizer


def _memory_queue(max_retries: int = 3, clock=None) -> OperationQueue:
    store = DurableStore.in_memory()
    store.initialize()
    if clock is None:
        return OperationQueue(store, max_retries=max_retries)
    return OperationQueue(store, max_retries=max_retries, clock=clock)


# =============================================================================
# FIFO ordering
# =============================================================================

@given(offsets=st.lists(st.integers(min_value=-5, max_value=5), min_size=1, max_size=25))
@settings(max_examples=50, deadline=None)
def test_fifo_order_survives_clock_skew(offsets):
    """Even a clock that stalls or jumps back cannot reorder the queue."""
    base = datetime(2024, 1, 1, tzinfo=timezone.utc)
    ticks = iter(base + timedelta(milliseconds=offset) for offset in offsets)
    queue = _memory_queue(clock=lambda: next(ticks))

    ids = [
        queue.enqueue("withdrawal", {"amount": index + 1, "reason": "r"}, "/api/withdrawals")
        for index in range(len(offsets))
    ]

    assert [entry.id for entry in queue.list_all()] == ids
    stamps = [entry.enqueued_at for entry in queue.list_all()]
    assert stamps == sorted(stamps)
    assert len(set(stamps)) == len(stamps)


# =============================================================================
# Retry policy
# =============================================================================

@given(
    max_retries=st.integers(min_value=1, max_value=4),
    entries=st.integers(min_value=1, max_value=4),
    outcomes=st.lists(st.sampled_from([200, 500, 503, 200]), min_size=1, max_size=30),
    passes=st.integers(min_value=1, max_value=6),
)
@settings(max_examples=50, deadline=None)
def test_retry_budget_is_never_exceeded(max_retries, entries, outcomes, passes):
    queue = _memory_queue(max_retries=max_retries)
    facades = OfflineFacades.for_queue(queue)
    ids = [facades.sales.queue_sale(f"p{index}", 1) for index in range(entries)]

    sent: dict[str, int] = {}
    answers = iter(outcomes)

    def handler(request: httpx.Request) -> httpx.Response:
        body = request.read().decode()
        sent[body] = sent.get(body, 0) + 1
        status = next(answers, 500)
        return httpx.Response(status, json={"success": status < 400})

    async def run_passes() -> None:
        client = ReplayClient("http://shop.test", transport=httpx.MockTransport(handler))
        sync = Synchronizer(queue, client, inter_operation_delay_seconds=0)
        try:
            for _ in range(passes):
                await sync.sync_all()
        finally:
            await client.close()

    asyncio.run(run_passes())

    assert all(count <= max_retries for count in sent.values())
    for entry_id in ids:
        entry = queue.get(entry_id)
        if entry is None:
            continue
        assert entry.retry_count <= max_retries
        assert (entry.status == EntryStatus.failed) == (entry.retry_count >= max_retries)
        assert entry.status != EntryStatus.syncing
