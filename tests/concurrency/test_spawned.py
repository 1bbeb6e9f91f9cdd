import pytest

from asyncscope.concurrency.faults import AbandonedResultError, MutationGuard, ConcurrentMutationError, ScopeFault
from asyncscope.concurrency.oneshot import channel
from asyncscope.concurrency.spawned import Outcome, Spawned


class TestOutcome:
    def test_success_unwraps_value(self):
        outcome = Outcome.success(3)
        assert outcome.ok
        assert outcome.unwrap() == 3

    def test_failure_reraises(self):
        outcome = Outcome.failure(ValueError("bad"))
        assert not outcome.ok
        with pytest.raises(ValueError, match="bad"):
            outcome.unwrap()


class TestSpawned:
    @pytest.mark.asyncio
    async def test_resolves_delivered_value(self):
        tx, rx = channel()
        handle = Spawned(rx)
        assert not handle.done()
        assert "pending" in repr(handle)

        tx.send(Outcome.success("value"))
        assert handle.done()
        assert await handle == "value"

    @pytest.mark.asyncio
    async def test_dropped_producer_is_fatal(self):
        tx, rx = channel()
        handle = Spawned(rx)
        tx.close()

        with pytest.raises(AbandonedResultError):
            await handle

    @pytest.mark.asyncio
    async def test_abandoned_result_is_not_an_exception(self):
        tx, rx = channel()
        tx.close()

        caught = None
        try:
            try:
                await Spawned(rx)
            except Exception:
                pytest.fail("AbandonedResultError must not be caught as Exception")
        except ScopeFault as e:
            caught = e
        assert isinstance(caught, AbandonedResultError)

    def test_close_discards_result(self):
        tx, rx = channel()
        handle = Spawned(rx)
        handle.close()
        assert tx.send(Outcome.success(1)) is False


class TestMutationGuard:
    def test_overlapping_entry_faults(self):
        guard = MutationGuard("state")
        with guard:
            assert guard.held
            with pytest.raises(ConcurrentMutationError, match="already being mutated"):
                with guard:
                    pass
        assert not guard.held

    def test_sequential_entries_are_fine(self):
        guard = MutationGuard("state")
        for _ in range(3):
            with guard:
                pass

    def test_other_thread_faults(self):
        import threading

        guard = MutationGuard("state")
        errors = []

        def worker():
            try:
                with guard:
                    pass
            except ConcurrentMutationError as e:
                errors.append(e)

        thread = threading.Thread(target=worker)
        thread.start()
        thread.join()

        assert len(errors) == 1
        assert not guard.held
