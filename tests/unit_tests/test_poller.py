"""
Unit tests for StatePoller.
"""

import unittest
from unittest.mock import MagicMock, patch

from errors import ResponseError, TransportError, WaitTimeout
from models import Service
from poller import StatePoller

SERVICE_URL = "http://rancher.local/v1/projects/1a5/services/1s7"


class FakeClock:
    """Monotonic clock that only moves when slept on or advanced."""

    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def monotonic(self):
        return self.now

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


def svc(state):
    return Service(name="web", state=state)


class TestStatePoller(unittest.TestCase):
    """Test StatePoller.wait_for."""

    def setUp(self):
        """Set up test fixtures."""
        self.clock = FakeClock()
        patcher = patch("poller.time")
        mock_time = patcher.start()
        self.addCleanup(patcher.stop)
        mock_time.monotonic.side_effect = self.clock.monotonic
        mock_time.sleep.side_effect = self.clock.sleep

        self.client = MagicMock()
        self.poller = StatePoller(self.client, check_interval=2, timeout=10)

    def test_immediate_match_does_not_sleep(self):
        """Test a service already in a desired state returns without sleeping."""
        self.client.get_service.return_value = svc("upgraded")

        result = self.poller.wait_for(SERVICE_URL, {"upgraded"})

        self.assertEqual(result.state, "upgraded")
        self.assertEqual(self.clock.sleeps, [])
        self.client.get_service.assert_called_once_with(SERVICE_URL)

    def test_waits_until_match(self):
        """Test polling continues until a desired state is seen, then stops."""
        self.client.get_service.side_effect = [
            svc("active"),
            svc("upgrading"),
            svc("upgraded"),
        ]

        result = self.poller.wait_for(SERVICE_URL, {"upgraded"})

        self.assertEqual(result.state, "upgraded")
        self.assertEqual(self.clock.sleeps, [2, 2])

    def test_any_desired_state_matches(self):
        """Test a set of desired states matches any member."""
        self.client.get_service.side_effect = [svc("upgrading"), svc("canceled-upgrade")]

        result = self.poller.wait_for(
            SERVICE_URL, {"upgraded", "canceled-upgrade", "active"}
        )

        self.assertEqual(result.state, "canceled-upgrade")

    def test_timeout_carries_last_service(self):
        """Test a timeout reports the last service observed."""
        self.client.get_service.return_value = svc("upgrading")

        with self.assertRaises(WaitTimeout) as ctx:
            self.poller.wait_for(SERVICE_URL, {"upgraded"})

        self.assertEqual(ctx.exception.service.state, "upgrading")
        self.assertGreater(ctx.exception.elapsed, 10)
        self.assertEqual(ctx.exception.desired_states, frozenset({"upgraded"}))

    def test_transient_errors_are_retried_without_sleep(self):
        """Test fetch failures are retried immediately and do not abort the wait."""
        self.client.get_service.side_effect = [
            TransportError("connection reset"),
            TransportError("503", status_code=503),
            svc("upgraded"),
        ]

        result = self.poller.wait_for(SERVICE_URL, {"upgraded"})

        self.assertEqual(result.state, "upgraded")
        self.assertEqual(self.clock.sleeps, [])
        self.assertEqual(self.client.get_service.call_count, 3)

    def test_timeout_without_any_service(self):
        """Test a timeout when every fetch failed carries no service."""

        def failing(url):
            self.clock.now += 4
            raise TransportError("timed out")

        self.client.get_service.side_effect = failing

        with self.assertRaises(WaitTimeout) as ctx:
            self.poller.wait_for(SERVICE_URL, {"upgraded"})

        self.assertIsNone(ctx.exception.service)
        self.assertEqual(self.client.get_service.call_count, 3)

    def test_timeout_keeps_last_good_service_after_failures(self):
        """Test failures after a good fetch keep that fetch as the last service."""

        calls = []

        def first_ok_then_failing(url):
            calls.append(url)
            if len(calls) == 1:
                return svc("upgrading")
            self.clock.now += 6
            raise TransportError("timed out")

        self.client.get_service.side_effect = first_ok_then_failing

        with self.assertRaises(WaitTimeout) as ctx:
            self.poller.wait_for(SERVICE_URL, {"upgraded"})

        self.assertEqual(ctx.exception.service.state, "upgrading")

    def test_max_consecutive_failures_guard(self):
        """Test the optional guard gives up after too many failures in a row."""
        poller = StatePoller(
            self.client, check_interval=2, timeout=10, max_consecutive_failures=3
        )
        self.client.get_service.side_effect = TransportError("refused")

        with self.assertRaises(WaitTimeout) as ctx:
            poller.wait_for(SERVICE_URL, {"upgraded"})

        self.assertIsNone(ctx.exception.service)
        self.assertEqual(self.client.get_service.call_count, 3)

    def test_failure_counter_resets_after_success(self):
        """Test only consecutive failures count toward the guard."""
        poller = StatePoller(
            self.client, check_interval=2, timeout=10, max_consecutive_failures=2
        )
        self.client.get_service.side_effect = [
            TransportError("refused"),
            svc("upgrading"),
            TransportError("refused"),
            svc("upgraded"),
        ]

        result = poller.wait_for(SERVICE_URL, {"upgraded"})

        self.assertEqual(result.state, "upgraded")

    def test_timeout_rearmed_per_call(self):
        """Test each wait_for call gets its own timeout budget."""
        self.client.get_service.side_effect = [
            svc("upgrading"),
            svc("upgrading"),
            svc("upgraded"),
            svc("rolling-back"),
            svc("active"),
        ]
        self.clock.now = 1000.0

        self.poller.wait_for(SERVICE_URL, {"upgraded"})
        result = self.poller.wait_for(SERVICE_URL, {"active"})

        self.assertEqual(result.state, "active")

    def test_decode_errors_propagate(self):
        """Test a malformed response is not treated as transient."""
        self.client.get_service.side_effect = ResponseError("not json")

        with self.assertRaises(ResponseError):
            self.poller.wait_for(SERVICE_URL, {"upgraded"})


if __name__ == "__main__":
    unittest.main()
