"""Unit tests for MQTT event broadcasting.

No broker is needed: MQTTBroadcaster is exercised through URL parsing and a
mocked paho client.
"""

import json
from unittest.mock import MagicMock, patch

import pytest

from cl_pixel_tools.common.schema_event import JobProgress, QueueIdle
from cl_pixel_tools.utils.mqtt import (
    BrokerAddress,
    InvalidMQTTURLException,
    MQTTBroadcaster,
    NoOpBroadcaster,
    QueueEventPublisher,
    UnsupportedMQTTURLException,
    get_broadcaster,
    parse_mqtt_url,
    shutdown_broadcaster,
)
from cl_pixel_tools.utils.mqtt.mqtt_impl import STATUS_OFFLINE, STATUS_ONLINE


@pytest.fixture(autouse=True)
def reset_broadcaster():
    shutdown_broadcaster()
    yield
    shutdown_broadcaster()


def connected_broadcaster(status_topic=None):
    broadcaster = MQTTBroadcaster(BrokerAddress("localhost", 1883), status_topic=status_topic)
    client = MagicMock()
    client.publish.return_value = MagicMock(rc=0)
    broadcaster.client = client
    broadcaster.connected = True
    return broadcaster, client


# ============================================================================
# URL parsing
# ============================================================================


class TestParseMQTTURL:
    def test_host_and_port(self):
        assert parse_mqtt_url("mqtt://broker.local:1884") == BrokerAddress("broker.local", 1884)

    def test_default_port(self):
        assert parse_mqtt_url("mqtt://localhost").port == 1883

    def test_unsupported_scheme(self):
        with pytest.raises(UnsupportedMQTTURLException):
            _ = parse_mqtt_url("http://localhost:1883")

    def test_missing_host(self):
        with pytest.raises(InvalidMQTTURLException):
            _ = parse_mqtt_url("mqtt://")

    def test_invalid_port(self):
        with pytest.raises(InvalidMQTTURLException):
            _ = parse_mqtt_url("mqtt://localhost:notaport")


# ============================================================================
# Broadcasters
# ============================================================================


class TestMQTTBroadcaster:
    def test_from_url(self):
        broadcaster = MQTTBroadcaster.from_url("mqtt://10.0.0.5:1999", status_topic="jobs/status")

        assert broadcaster.address == BrokerAddress("10.0.0.5", 1999)
        assert broadcaster.status_topic == "jobs/status"
        assert broadcaster.connected is False

    def test_publish_without_connection_fails(self):
        broadcaster = MQTTBroadcaster(BrokerAddress("localhost", 1883))
        assert broadcaster.publish("t", "{}") is False

    def test_publish_uses_client(self):
        broadcaster, client = connected_broadcaster()

        assert broadcaster.publish("jobs/a", '{"x":1}') is True
        client.publish.assert_called_once_with("jobs/a", '{"x":1}', qos=1, retain=False)

    def test_publish_reports_client_error_code(self):
        broadcaster, client = connected_broadcaster()
        client.publish.return_value = MagicMock(rc=4)

        assert broadcaster.publish("jobs/a", "{}") is False

    def test_disconnect_marks_offline(self):
        broadcaster, client = connected_broadcaster(status_topic="jobs/status")

        broadcaster.disconnect()

        client.publish.assert_called_once_with("jobs/status", STATUS_OFFLINE, qos=1, retain=True)
        client.disconnect.assert_called_once()
        client.loop_stop.assert_called_once()
        assert broadcaster.connected is False
        assert broadcaster.client is None

    def test_connect_sets_will_and_announces_online(self):
        client = MagicMock()
        client.publish.return_value = MagicMock(rc=0)
        broadcaster = MQTTBroadcaster(BrokerAddress("localhost", 1883), status_topic="jobs/status")

        def accept(*args, **kwargs):
            reason = MagicMock(is_failure=False)
            broadcaster._on_connect(client, None, MagicMock(), reason, None)
            return 0

        client.connect.side_effect = accept

        with patch("cl_pixel_tools.utils.mqtt.mqtt_impl.mqtt.Client", return_value=client):
            assert broadcaster.connect(timeout=0.5) is True

        client.will_set.assert_called_once_with("jobs/status", STATUS_OFFLINE, qos=1, retain=True)
        client.publish.assert_called_once_with("jobs/status", STATUS_ONLINE, qos=1, retain=True)

    def test_connect_unreachable(self):
        client = MagicMock()
        client.connect.side_effect = ConnectionRefusedError("refused")
        broadcaster = MQTTBroadcaster(BrokerAddress("localhost", 1883))

        with patch("cl_pixel_tools.utils.mqtt.mqtt_impl.mqtt.Client", return_value=client):
            assert broadcaster.connect(timeout=0.1) is False

        assert broadcaster.client is None


class TestBroadcasterInstance:
    def test_noop_broadcaster(self):
        broadcaster = NoOpBroadcaster()
        assert broadcaster.connect() is True
        assert broadcaster.publish("t", "{}") is True
        broadcaster.disconnect()

    def test_without_url_is_noop_singleton(self):
        first = get_broadcaster(None)
        second = get_broadcaster("")

        assert isinstance(first, NoOpBroadcaster)
        assert first is second

    def test_raises_when_unreachable(self):
        with patch.object(MQTTBroadcaster, "connect", return_value=False):
            with pytest.raises(RuntimeError, match="Failed to connect"):
                _ = get_broadcaster("mqtt://localhost:1883")

    def test_malformed_url(self):
        with pytest.raises(UnsupportedMQTTURLException):
            _ = get_broadcaster("tcp://localhost:1883")


# ============================================================================
# Queue event publishing
# ============================================================================


class TestQueueEventPublisher:
    def test_topics(self):
        publisher = QueueEventPublisher(NoOpBroadcaster(), "jobs/")

        assert publisher.topic_for(QueueIdle()) == "jobs/idle"
        assert publisher.topic_for(JobProgress(job_id="a", progress=0.5)) == "jobs/a"

    def test_publishes_json_payload(self):
        broadcaster = MagicMock()
        broadcaster.publish.return_value = True
        publisher = QueueEventPublisher(broadcaster, "cl_pixel_tools/jobs")

        publisher(JobProgress(job_id="a", progress=0.5))

        topic, payload = broadcaster.publish.call_args.args
        assert topic == "cl_pixel_tools/jobs/a"
        assert json.loads(payload) == {"type": "progress", "job_id": "a", "progress": 0.5}

    def test_refused_publish_is_counted(self):
        broadcaster = MagicMock()
        broadcaster.publish.return_value = False
        publisher = QueueEventPublisher(broadcaster, "jobs")

        publisher(QueueIdle())

        assert publisher.dropped == 1
