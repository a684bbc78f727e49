"""Tests for RQ queue access."""

from unittest.mock import MagicMock, patch

from triage.core import queue as queue_module
from triage.core.queue import (
    _queues,
    clear_queues,
    enqueue_job,
    get_queue,
    get_queue_connection,
)


class TestGetQueue:
    """Test get_queue function."""

    def teardown_method(self) -> None:
        _queues.clear()
        queue_module._queue_connection = None

    @patch("triage.core.queue.Redis")
    def test_queue_connection_does_not_decode(self, mock_redis_class: MagicMock) -> None:
        """Test RQ gets a raw connection."""
        get_queue_connection()
        assert "decode_responses" not in mock_redis_class.from_url.call_args.kwargs

    @patch("triage.core.queue.get_queue_connection")
    @patch("triage.core.queue.Queue")
    def test_get_queue_caches(self, mock_queue_class: MagicMock, mock_connection: MagicMock) -> None:
        """Test queues are created once per name."""
        first = get_queue("test")
        second = get_queue("test")

        assert first is second
        mock_queue_class.assert_called_once_with(name="test", connection=mock_connection.return_value)

    @patch("triage.core.queue.get_queue")
    def test_enqueue_job(self, mock_get_queue: MagicMock) -> None:
        """Test jobs are enqueued with their timeout."""
        enqueue_job("some.job", 1, queue_name="q", job_timeout=30, key="value")

        mock_get_queue.assert_called_once_with("q")
        mock_get_queue.return_value.enqueue.assert_called_once_with("some.job", 1, job_timeout=30, key="value")

    def test_clear_queues_closes_connection(self) -> None:
        """Test clearing drops queues and closes the connection."""
        connection = MagicMock()
        queue_module._queue_connection = connection
        _queues["x"] = MagicMock()

        clear_queues()

        connection.close.assert_called_once()
        assert _queues == {}
        assert queue_module._queue_connection is None
