"""
In-process fan-out of score and bracket notifications.

Subscribers listen on ``event:<id>`` and/or ``match:<id>`` channels and
receive every notification published for those ids, in publish order.
"""
import logging
import queue
import threading
from typing import Dict, Iterable, List, Optional

logger = logging.getLogger(__name__)

SCORE_UPDATED = 'score-updated'
MATCH_UPDATED = 'match-updated'
MATCH_FINISHED = 'match-finished'
BRACKET_UPDATED = 'bracket-updated'
EVENT_COMPLETED = 'event-completed'


def event_channel(event_id: str) -> str:
    return f'event:{event_id}'


def match_channel(match_id: str) -> str:
    return f'match:{match_id}'


class Subscription:
    def __init__(self, hub: 'NotificationHub', channels: Iterable[str], maxsize: int = 1000):
        self.hub = hub
        self.channels = set(channels)
        self.queue = queue.Queue(maxsize=maxsize)

    def get(self, timeout: Optional[float] = None) -> Optional[Dict]:
        """Next notification, or None if nothing arrived within ``timeout``."""
        try:
            return self.queue.get(timeout=timeout)
        except queue.Empty:
            return None

    def drain(self) -> List[Dict]:
        items = []
        while True:
            try:
                items.append(self.queue.get_nowait())
            except queue.Empty:
                return items

    def close(self):
        self.hub.unsubscribe(self)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()


class NotificationHub:
    def __init__(self):
        self._subscriptions: List[Subscription] = []
        self._lock = threading.Lock()

    def subscribe(self, *channels: str) -> Subscription:
        subscription = Subscription(self, channels)
        with self._lock:
            self._subscriptions.append(subscription)
        return subscription

    def unsubscribe(self, subscription: Subscription):
        with self._lock:
            if subscription in self._subscriptions:
                self._subscriptions.remove(subscription)

    def publish(self, name: str, payload: Dict):
        """
        Deliver ``name`` with ``payload`` to subscribers of its event or match.

        Each subscriber receives a notification at most once even when it
        listens on both channels. Full subscriber queues drop the message.
        """
        channels = set()
        if payload.get('eventId'):
            channels.add(event_channel(payload['eventId']))
        if payload.get('matchId'):
            channels.add(match_channel(payload['matchId']))

        message = {'event': name, 'data': payload}
        with self._lock:
            targets = [s for s in self._subscriptions if s.channels & channels]
        for subscription in targets:
            try:
                subscription.queue.put_nowait(message)
            except queue.Full:
                logger.warning("Dropping %s for a slow subscriber on %s", name, sorted(subscription.channels))
        logger.debug("Published %s to %d subscriber(s)", name, len(targets))
