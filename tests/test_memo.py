import asyncio

import pytest

from buildkit.memo import OnceTask


@pytest.mark.asyncio
async def test_concurrent_callers_share_one_run():
    calls = 0
    gate = asyncio.Event()

    async def job():
        nonlocal calls
        calls += 1
        await gate.wait()
        return calls

    once = OnceTask("discover:pkg")
    waiters = [asyncio.ensure_future(once.run(job)) for _ in range(3)]
    await asyncio.sleep(0)
    gate.set()

    assert await asyncio.gather(*waiters) == [1, 1, 1]
    assert calls == 1
    assert once.done
    assert once.result() == 1


@pytest.mark.asyncio
async def test_completed_result_is_reused_until_forced():
    calls = 0

    async def job():
        nonlocal calls
        calls += 1
        return calls

    once = OnceTask("build:pkg")

    assert await once.run(job) == 1
    assert await once.run(job) == 1
    assert await once.run(job, force=True) == 2
    assert once.generation == 2
    assert once.result() == 2


@pytest.mark.asyncio
async def test_failed_generation_is_dropped():
    attempts = 0

    async def job():
        nonlocal attempts
        attempts += 1
        if attempts == 1:
            raise RuntimeError("first attempt fails")
        return "ok"

    once = OnceTask("build:pkg")

    with pytest.raises(RuntimeError, match=r"first attempt fails"):
        await once.run(job)
    assert not once.done
    assert once.result() is None

    assert await once.run(job) == "ok"
    assert attempts == 2


@pytest.mark.asyncio
async def test_cancelled_caller_does_not_cancel_shared_job():
    gate = asyncio.Event()

    async def job():
        await gate.wait()
        return "done"

    once = OnceTask("discover:pkg")
    first = asyncio.ensure_future(once.run(job))
    second = asyncio.ensure_future(once.run(job))
    await asyncio.sleep(0)

    first.cancel()
    gate.set()

    assert await second == "done"
    await asyncio.gather(first, return_exceptions=True)
    assert first.cancelled()
    assert once.result() == "done"


@pytest.mark.asyncio
async def test_reset_forgets_the_cached_result():
    once = OnceTask("build:pkg")

    async def job():
        return 1

    await once.run(job)
    once.reset()

    assert once.result() is None
    assert not once.done
