from unittest.mock import MagicMock, patch

import pytest

from app.commands.enrich_event_command import BatchReport
from app.config import Settings
from app.exceptions import UpstreamUnavailableError
from app.tasks.enrichment_task import (
    enrich_event_batch_task,
    enrich_event_task,
    failed_records,
)
from app.tasks.indexing_task import index_event_task
from app.tasks.outbox_task import republish_pending_events_task


def _state(run_side_effect=None, run_return=None):
    state = MagicMock()
    state.settings = Settings(task_retry_backoff_seconds=1, task_max_retries=2)

    def run(coro):
        coro.close()
        if run_side_effect is not None:
            raise run_side_effect
        return run_return

    state.run.side_effect = run
    return state


def test_enrichment_drops_malformed_record():
    with patch("app.tasks.enrichment_task.get_state") as get_state:
        assert enrich_event_task({"eventType": "email.received"}) is None
    get_state.assert_not_called()


def test_enrichment_returns_event_id(raw_event):
    state = _state()
    with patch("app.tasks.enrichment_task.get_state", return_value=state):
        assert enrich_event_task(raw_event.to_message()) == raw_event.event_id
    state.run.assert_called_once()


def test_enrichment_failure_is_retried(raw_event):
    state = _state(run_side_effect=ConnectionError("indexing queue down"))
    with patch("app.tasks.enrichment_task.get_state", return_value=state):
        with pytest.raises(ConnectionError):
            enrich_event_task(raw_event.to_message())


def test_indexing_drops_malformed_record(raw_event):
    # A RawEvent lacks the enrichment fields.
    with patch("app.tasks.indexing_task.get_state") as get_state:
        assert index_event_task(raw_event.to_message()) is None
    get_state.assert_not_called()


def test_indexing_returns_vector_count(enriched_event):
    state = _state(run_return=3)
    with patch("app.tasks.indexing_task.get_state", return_value=state):
        assert index_event_task(enriched_event.to_message()) == 3


def test_indexing_failure_is_retried(enriched_event):
    state = _state(run_side_effect=UpstreamUnavailableError("embeddings", "down"))
    with patch("app.tasks.indexing_task.get_state", return_value=state):
        with pytest.raises(UpstreamUnavailableError):
            index_event_task(enriched_event.to_message())


def test_batch_enrichment_returns_processed_ids(raw_event):
    report = BatchReport(processed=[raw_event.event_id], skipped=[1])
    state = _state(run_return=report)
    with patch("app.tasks.enrichment_task.get_state", return_value=state):
        processed = enrich_event_batch_task([raw_event.to_message(), {"bad": 1}])
    assert processed == [raw_event.event_id]
    state.run.assert_called_once()


def test_batch_enrichment_retries_failed_records(raw_event):
    report = BatchReport(failed=[raw_event.event_id])
    state = _state(run_return=report)
    with patch("app.tasks.enrichment_task.get_state", return_value=state):
        with pytest.raises(UpstreamUnavailableError):
            enrich_event_batch_task([raw_event.to_message()])


def test_failed_records_keeps_only_failed_events(raw_event):
    ok = raw_event.to_message()
    failed = raw_event.model_copy(update={"event_id": "evt-failed"}).to_message()
    report = BatchReport(processed=[raw_event.event_id], failed=["evt-failed"])

    assert failed_records([ok, failed, "garbage"], report) == [failed]


def test_outbox_sweep_task_runs_command():
    state = _state()
    with patch("app.tasks.outbox_task.get_state", return_value=state), patch(
        "app.tasks.outbox_task.RepublishPendingEventsCommand"
    ) as command_cls:
        command_cls.return_value.execute.return_value = 4
        assert republish_pending_events_task(limit=10) == 4
    command_cls.return_value.execute.assert_called_once_with(limit=10)
