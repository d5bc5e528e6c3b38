"""Tests for the background token refresher."""

import time
from unittest.mock import MagicMock

from vkv.config import RefresherConfig
from vkv.exceptions import ForbiddenError, TransportError
from vkv.lease import LeaseRefresher


class TestTick:
    """Tests for LeaseRefresher.tick."""

    def test_no_renewal_above_half_ttl(self, store):
        store.token = {"ttl": 40, "creation_ttl": 60}

        assert LeaseRefresher(store).tick() is False
        assert store.renewals == []

    def test_renews_below_half_ttl(self, store):
        store.token = {"ttl": 20, "creation_ttl": 60}

        assert LeaseRefresher(store, increment=45).tick() is True
        assert store.renewals == [45]

    def test_non_expiring_token(self, store):
        store.token = {"ttl": 0, "creation_ttl": 0}

        assert LeaseRefresher(store).tick() is False

    def test_lookup_failure_is_logged(self):
        client = MagicMock()
        client.lookup_token.side_effect = TransportError("connection refused")

        assert LeaseRefresher(client).tick() is None
        client.renew_token.assert_not_called()

    def test_renew_failure_is_logged(self):
        client = MagicMock()
        client.lookup_token.return_value = {"ttl": 1, "creation_ttl": 60}
        client.renew_token.side_effect = ForbiddenError("permission denied")

        assert LeaseRefresher(client).tick() is None


class TestThread:
    def test_from_config(self, store):
        refresher = LeaseRefresher.from_config(store, RefresherConfig(interval=2.5, increment=90))

        assert refresher.interval == 2.5
        assert refresher.increment == 90
        assert refresher.daemon is True

    def test_runs_until_stopped(self, store):
        store.token = {"ttl": 1, "creation_ttl": 60}
        refresher = LeaseRefresher(store, interval=0.01, increment=30)

        refresher.start()
        deadline = time.monotonic() + 2
        while not store.renewals and time.monotonic() < deadline:
            time.sleep(0.01)
        refresher.stop(timeout=1)

        assert store.renewals
        assert not refresher.is_alive()

    def test_stop_before_start(self, store):
        LeaseRefresher(store).stop()
