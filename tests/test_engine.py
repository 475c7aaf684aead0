"""
Tests for the Fundament engine.
"""

import threading
import time
import uuid
from unittest.mock import Mock, patch

import pytest

from conftest import InlineExecutor, PendingFetch, Recorder

from fundament.clock import ManualClock
from fundament.engine import Fundament
from fundament.exceptions import UnknownResponseTypeError
from fundament.settings import DEFAULT_UPDATE_INTERVAL, Settings
from fundament.sources import from_callback


class Thermometer:
    """Sample observer object."""

    def __init__(self):
        self.readings = []

    def on_reading(self, value):
        self.readings.append(value)


class TestDataSources:
    """Registering, polling and removing data sources."""

    def test_polls_and_notifies(self, engine, clock):
        readings = iter([20, 21])
        received = Recorder()
        engine.add_data_source(lambda: next(readings), interval=1, key="temp")
        engine.add_listener("temp", received)

        clock.advance(1)
        assert engine.get("temp") == 20

        clock.advance(1)
        assert engine.get("temp") == 21
        assert received.values == [20, 21]

    def test_no_value_before_first_fetch(self, engine, counter):
        engine.add_data_source(counter, interval=5, key="temp")

        assert engine.get("temp") is None
        assert engine.get("unknown") is None

    def test_duplicate_key(self, engine, clock, counter):
        assert engine.add_data_source(counter, interval=1, key="temp") == "temp"
        assert engine.add_data_source(counter, interval=1, key="temp") is None

        assert clock.pending() == 1
        assert engine.keys() == ["temp"]

    def test_generated_key(self, engine, counter):
        key = engine.add_data_source(counter, interval=1)

        uuid.UUID(key)
        assert engine.keys() == [key]

    def test_default_interval_applies_to_new_sources_only(self, engine, clock):
        first, second = Mock(return_value=1), Mock(return_value=2)
        engine.default_update_interval = 10
        engine.add_data_source(first, key="first")
        engine.default_update_interval = 20
        engine.add_data_source(second, key="second")

        clock.advance(10)
        assert first.call_count == 1
        assert second.call_count == 0

        clock.advance(10)
        assert first.call_count == 2
        assert second.call_count == 1

    def test_default_interval_zero_means_fallback(self, engine):
        engine.default_update_interval = 0

        assert engine.default_update_interval == DEFAULT_UPDATE_INTERVAL

    def test_default_interval_negative(self, engine):
        with pytest.raises(ValueError):
            engine.default_update_interval = -1

    def test_default_interval_from_settings(self, test_settings, clock, executor):
        test_settings.default_update_interval = 5
        engine = Fundament(test_settings, clock=clock, executor=executor)
        fetch = Mock(return_value=1)
        engine.add_data_source(fetch, key="temp")

        clock.advance(5)

        fetch.assert_called_once()
        engine.shutdown()

    def test_busy_source_fetches_once(self, engine, clock, pending_fetch):
        engine.add_data_source(pending_fetch, interval=1, key="slow")

        clock.advance(3)

        assert pending_fetch.calls == 1
        assert engine.status("slow")["status"] == "busy"
        assert engine.status("slow")["busy_since"] is not None

        pending_fetch.resolve("done")
        assert engine.get("slow") == "done"
        assert engine.status("slow")["status"] == "idle"

    def test_failed_fetch_keeps_previous_value(self, engine, clock):
        fetch = Mock(side_effect=[20, ConnectionError("down"), 22])
        received = Recorder()
        engine.add_data_source(fetch, interval=1, key="temp")
        engine.add_listener("temp", received)

        clock.advance(1)
        clock.advance(1)
        assert engine.get("temp") == 20

        clock.advance(1)
        assert engine.get("temp") == 22
        assert received.values == [20, 22]

    def test_callback_style_source(self, engine, clock):
        pending = []
        engine.add_data_source(from_callback(pending.append), interval=1, key="cb")

        clock.advance(1)
        assert engine.get("cb") is None

        pending[0]("value")
        assert engine.get("cb") == "value"

    def test_refresh(self, engine, counter):
        engine.add_data_source(counter, interval=60, key="temp")

        assert engine.refresh("temp") is True
        assert engine.get("temp") == 1
        assert engine.refresh("missing") is False

    def test_unregister(self, engine, clock, counter):
        received = Recorder()
        engine.add_data_source(counter, interval=1, key="temp")
        engine.add_listener("temp", received)
        clock.advance(1)

        assert engine.unregister("temp") is True
        assert engine.unregister("temp") is False

        clock.advance(5)
        assert engine.get("temp") is None
        assert engine.keys() == []
        assert received.values == [1]
        assert engine.observers.count("temp") == 0

    def test_unregister_unknown_keeps_listeners(self, engine):
        engine.add_listener("later", Recorder())

        assert engine.unregister("later") is False
        assert engine.observers.count("later") == 1

    def test_unregister_while_fetching(self, engine, clock, pending_fetch):
        received = Recorder()
        engine.add_data_source(pending_fetch, interval=1, key="slow")
        engine.add_listener("slow", received)
        clock.advance(1)

        engine.unregister("slow")
        pending_fetch.resolve("late")

        assert engine.get("slow") is None
        assert received.values == []

    def test_reregister_after_unregister(self, engine, clock, counter):
        engine.add_data_source(counter, interval=1, key="temp")
        engine.unregister("temp")

        assert engine.add_data_source(counter, interval=1, key="temp") == "temp"
        clock.advance(1)
        assert engine.get("temp") == 1

    def test_reregistered_key_drops_result_of_old_registration(self, engine, clock):
        """Test that a fetch started before unregister cannot complete the new source."""
        old, new = PendingFetch(), PendingFetch()
        received = Recorder()
        engine.add_data_source(old, interval=1, key="temp")
        clock.advance(1)
        engine.unregister("temp")

        engine.add_data_source(new, interval=1, key="temp")
        engine.add_listener("temp", received)
        clock.advance(1)
        old.resolve("stale")

        assert engine.get("temp") is None
        assert received.values == []
        assert engine.status("temp")["status"] == "busy"

        clock.advance(1)
        assert new.calls == 1

        new.resolve("fresh")
        assert engine.get("temp") == "fresh"
        assert received.values == ["fresh"]

    def test_invalid_interval(self, engine, counter):
        with pytest.raises(ValueError):
            engine.add_data_source(counter, interval=-1, key="temp")

    def test_zero_interval_rejected(self, engine, clock, counter):
        """Test that an explicit zero interval is not replaced by the default."""
        with pytest.raises(ValueError, match="must be positive"):
            engine.add_data_source(counter, interval=0, key="temp")

        assert engine.keys() == []
        assert clock.pending() == 0

    def test_evicted_value_refetched_on_next_tick(self, engine, clock, counter):
        engine.add_data_source(counter, interval=1, key="temp")
        clock.advance(1)

        assert engine.cache.evict("temp") == ["temp"]
        assert engine.get("temp") is None

        clock.advance(1)
        assert engine.get("temp") == 2


class TestListeners:
    """Listener registration through the engine."""

    def test_listener_before_source(self, engine, clock, counter):
        received = Recorder()
        engine.add_listener("temp", received)
        engine.add_data_source(counter, interval=1, key="temp")

        clock.advance(1)

        assert received.values == [1]

    def test_duplicate_id_without_overwrite(self, engine):
        assert engine.add_listener("temp", Recorder(), listener_id="x") == "temp.x"
        assert (
            engine.add_listener("temp", Recorder(), listener_id="x", overwrite=False)
            is None
        )

    def test_remove_listener(self, engine, clock, counter):
        received = Recorder()
        engine.add_data_source(counter, interval=1, key="temp")
        listener_id = engine.add_listener("temp", received)
        clock.advance(1)

        assert engine.remove_listener(listener_id) is True
        clock.advance(1)

        assert received.values == [1]
        assert engine.remove_listener(listener_id) is False

    def test_target_listener(self, engine, clock, counter):
        thermometer = Thermometer()
        engine.add_data_source(counter, interval=1, key="temp")
        listener_id = engine.add_target_listener("temp", thermometer, "on_reading")

        clock.advance(2)

        assert thermometer.readings == [1, 2]
        assert listener_id.startswith("temp.")

    def test_descriptive_listener_ids(self, temp_dir, clock, executor):
        settings = Settings(root_dir=temp_dir, descriptive_listener_ids=True)
        with Fundament(settings, clock=clock, executor=executor) as engine:
            first = engine.add_target_listener("temp", Thermometer(), "on_reading")
            second = engine.add_target_listener("temp", Thermometer(), "on_reading")

            assert engine.descriptive_listener_ids is True
            assert first == "temp.Thermometer_on_reading"
            assert second == "temp.Thermometer_on_reading_2"


class TestURLSources:
    """URL data sources and bulk registration."""

    def test_add_url_data_source(self, engine):
        response = Mock(content=b'{"celsius": 20}')
        with patch(
            "fundament.fetch.url_source.requests.get", return_value=response
        ) as mock_get:
            key = engine.add_url_data_source(
                "https://example.com/weather.json", "json", key="weather"
            )
            engine.refresh(key)

        mock_get.assert_called_once_with(
            "https://example.com/weather.json", timeout=5
        )
        assert engine.get("weather") == {"celsius": 20}

    def test_unknown_response_type(self, engine):
        with pytest.raises(UnknownResponseTypeError):
            engine.add_url_data_source("https://example.com/x", "yaml")

    def test_add_from_dict(self, engine, clock):
        key = engine.add_url_data_source_from_dict(
            {"format": "string", "url": "https://example.com/a.txt", "interval": 3}
        )

        assert engine.status(key)["interval"] == 3

    def test_add_many_from_dict(self, engine, sources_mapping):
        results = engine.add_url_data_sources_from_dict(sources_mapping)

        assert results == {"weather": "weather", "headlines": "headlines"}
        assert engine.status("weather")["interval"] == 10
        assert engine.status("headlines")["interval"] == DEFAULT_UPDATE_INTERVAL

    def test_from_settings_loads_default_config(
        self, test_settings, config_file, clock
    ):
        engine = Fundament.from_settings(
            test_settings, clock=clock, executor=InlineExecutor()
        )

        assert sorted(engine.keys()) == ["headlines", "weather"]
        engine.shutdown()

    def test_from_settings_without_config(self, test_settings, clock):
        engine = Fundament.from_settings(test_settings, clock=clock)

        assert engine.keys() == []
        engine.shutdown()


class TestStatus:
    """Engine status reporting."""

    def test_status_of_all_sources(self, engine, clock, counter):
        engine.add_data_source(counter, interval=1, key="temp")
        engine.add_data_source(PendingFetch(), interval=30, key="slow")
        engine.add_listener("temp", Recorder())
        clock.advance(1)

        status = engine.status()

        assert set(status) == {"temp", "slow"}
        assert status["temp"]["cached"] is True
        assert status["temp"]["listeners"] == 1
        assert status["temp"]["updates"] == 1
        assert status["slow"]["cached"] is False
        assert status["slow"]["status"] == "idle"

    def test_status_of_unknown_key(self, engine):
        assert engine.status("missing") is None

    def test_shutdown_stops_timers(self, test_settings):
        clock = ManualClock()
        engine = Fundament(test_settings, clock=clock, executor=InlineExecutor())
        engine.add_data_source(Mock(return_value=1), interval=1, key="temp")

        engine.shutdown()
        clock.advance(5)

        assert clock.pending() == 0
        assert engine.get("temp") is None


class TestDeliveryOrder:
    """Notifications of one key follow the order values were stored."""

    def test_refresh_from_listener_is_delivered_after_current_value(
        self, engine, clock, counter
    ):
        """Test that a value fetched during delivery waits for the current pass."""
        log = []
        second = Recorder("second", log)

        def first(value):
            log.append(("first", value))
            if value == 1:
                engine.refresh("temp")

        engine.add_data_source(counter, interval=1, key="temp")
        engine.add_listener("temp", first)
        engine.add_listener("temp", second)

        clock.advance(1)

        assert engine.get("temp") == 2
        assert second.values == [1, 2]
        assert log == [("first", 1), "second", ("first", 2), "second"]

    def test_unregister_during_delivery_drops_queued_values(
        self, engine, clock, counter
    ):
        received = Recorder()

        def first(value):
            engine.refresh("temp")
            engine.unregister("temp")

        engine.add_data_source(counter, interval=1, key="temp")
        engine.add_listener("temp", first)
        engine.add_listener("temp", received)

        clock.advance(1)

        assert received.values == [1]
        assert engine.get("temp") is None


class TestThreadedEngine:
    """The engine driven by real timer threads and a thread pool."""

    def test_blocked_fetch_runs_once_until_released(self, test_settings):
        """Test that overlapping ticks never start a second fetch for a busy key."""
        started = threading.Event()
        release = threading.Event()
        delivered = threading.Event()
        calls = []
        received = []

        def fetch():
            calls.append(time.monotonic())
            started.set()
            release.wait(5)
            return "ready"

        def listener(value):
            received.append(value)
            delivered.set()

        with Fundament(test_settings) as engine:
            engine.add_data_source(fetch, interval=0.05, key="slow")
            engine.add_listener("slow", listener)

            assert started.wait(2)
            # Several intervals elapse while the fetch is blocked.
            time.sleep(0.3)
            assert len(calls) == 1
            assert engine.status("slow")["status"] == "busy"
            assert engine.get("slow") is None

            release.set()
            assert delivered.wait(2)
            assert engine.get("slow") == "ready"

        assert received[0] == "ready"
