from loguru import logger

from .mqtt_impl import BroadcasterBase, MQTTBroadcaster, NoOpBroadcaster

# (broker url, broadcaster) of the process-wide connection
_active: tuple[str | None, BroadcasterBase] | None = None


def get_broadcaster(url: str | None = None, *, status_topic: str | None = None) -> BroadcasterBase:
    """Return the process-wide broadcaster for ``url``, connecting on first use.

    Args:
        url: MQTT broker URL (``mqtt://host[:port]``). None or empty gives a
             NoOpBroadcaster.
        status_topic: Retained online/offline topic for a new MQTT connection.

    Raises:
        InvalidMQTTURLException / UnsupportedMQTTURLException: If url is malformed.
        RuntimeError: If the broker cannot be reached.
    """
    global _active

    key = url or None
    if _active is not None and _active[0] == key:
        return _active[1]

    shutdown_broadcaster()

    broadcaster: BroadcasterBase
    if key is None:
        broadcaster = NoOpBroadcaster()
    else:
        broadcaster = MQTTBroadcaster.from_url(key, status_topic=status_topic)

    if not broadcaster.connect():
        raise RuntimeError(f"Failed to connect to MQTT broker at {url}")

    logger.debug(f"Broadcaster ready: {type(broadcaster).__name__}")
    _active = (key, broadcaster)
    return broadcaster


def shutdown_broadcaster() -> None:
    global _active
    if _active is not None:
        _active[1].disconnect()
    _active = None
