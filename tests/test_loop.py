"""Tests for the polling loop."""

import threading

from conftest import FakeTracker, make_item
from issue_autopilot.engine.events import EventTypes
from issue_autopilot.errors import TransportError
from issue_autopilot.retry import RetryPolicy
from issue_autopilot.worker.loop import PollingLoop


class RecordingPipeline:
    def __init__(self, on_process=None, duplicates=()):
        self.processed = []
        self.on_process = on_process
        self.duplicates = set(duplicates)

    def process_work_item(self, item):
        self.processed.append(item.number)
        if self.on_process:
            self.on_process()
        if item.id in self.duplicates:
            return None
        return item


def no_retry() -> RetryPolicy:
    return RetryPolicy(max_attempts=1, base_delay=0, sleep=lambda s: None)


class TestRunCycle:
    def test_processes_each_issue_in_order(self, state):
        tracker = FakeTracker([make_item(id=1, number=1), make_item(id=2, number=2)])
        pipeline = RecordingPipeline()
        loop = PollingLoop(pipeline, tracker, retry=no_retry(), emit=state.record)

        assert loop.run_cycle() == 2
        assert pipeline.processed == [1, 2]

    def test_duplicates_not_counted(self, state):
        tracker = FakeTracker([make_item(id=1, number=1), make_item(id=2, number=2)])
        pipeline = RecordingPipeline(duplicates={1})
        loop = PollingLoop(pipeline, tracker, retry=no_retry(), emit=state.record)

        assert loop.run_cycle() == 1
        assert pipeline.processed == [1, 2]

    def test_idle(self, state):
        loop = PollingLoop(RecordingPipeline(), FakeTracker(), retry=no_retry(), emit=state.record)
        assert loop.run_cycle() == 0
        assert state.snapshot()["events"][0]["type"] == EventTypes.POLL_IDLE

    def test_listing_failure_counted_not_raised(self, state):
        tracker = FakeTracker()
        tracker.fail_list = TransportError("down", status_code=503)
        loop = PollingLoop(RecordingPipeline(), tracker, retry=no_retry(), emit=state.record)

        assert loop.run_cycle() == 0
        assert state.snapshot()["stats"]["errors"] == 1

    def test_stop_leaves_remaining_issues(self):
        tracker = FakeTracker([make_item(id=i, number=i) for i in range(1, 4)])
        loop = None

        def stop_after_first():
            loop.stop()

        pipeline = RecordingPipeline(on_process=stop_after_first)
        loop = PollingLoop(pipeline, tracker, retry=no_retry())
        loop.run_cycle()
        assert pipeline.processed == [1]


class TestStartStop:
    def test_thread_runs_until_stopped(self):
        cycled = threading.Event()
        tracker = FakeTracker([make_item()])
        pipeline = RecordingPipeline(on_process=cycled.set)
        loop = PollingLoop(pipeline, tracker, retry=no_retry(), interval=3600)

        thread = loop.run_in_thread()
        assert cycled.wait(5)
        loop.stop()
        thread.join(5)

        assert not thread.is_alive()
        assert not loop.running
