"""Per-key change notification.

Subscribers register a callback for one exact key path. Publishing a key path calls its
subscribers synchronously, in subscription order, with ``(key_path, value)``. There is no
fan-out to parent or child paths. A failing callback is logged and recorded in
:attr:`ChangeNotifier.failures`; the remaining callbacks still run and the writer that
triggered the publish never sees the error.
"""
import collections
import logging
import threading
from typing import Any, Callable, Deque, Dict, List, Optional, Tuple

from ..signals import signals

Callback = Callable[[str, Any], None]

#: Number of callback errors kept in :attr:`ChangeNotifier.failures`.
MAX_FAILURES: int = 100


class Subscription:
    """Handle for one ``(key_path, callback)`` registration.

    Can be used as a context manager to unsubscribe on exit.
    """

    def __init__(self, notifier: 'ChangeNotifier', key_path: str, callback: Callback) -> None:
        self._notifier = notifier
        self.key_path = key_path
        self.callback = callback
        self.active = True

    def __repr__(self) -> str:
        return f'<Subscription key_path={self.key_path!r}, active={self.active}>'

    def __enter__(self) -> 'Subscription':
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.cancel()

    def cancel(self) -> bool:
        """Unsubscribe. Returns False if already inactive."""
        return self._notifier.unsubscribe(self)


class ChangeNotifier:
    """Holds subscriber lists per key path and delivers change notifications.

    Attributes:
        failures (deque[tuple[str, Exception]]): The most recent callback errors caught during
            publish, oldest first. Holds at most ``max_failures`` entries.
        defaults (dict[str, Any]): Values reported to subscribers when a key was removed.
    """

    def __init__(self, max_failures: int = MAX_FAILURES) -> None:
        self._lock = threading.RLock()
        self._subscribers: Dict[str, List[Subscription]] = {}
        self.failures: Deque[Tuple[str, Exception]] = collections.deque(maxlen=max_failures)
        self.defaults: Dict[str, Any] = {}

    def __repr__(self) -> str:
        return f'<ChangeNotifier keys={len(self._subscribers)}>'

    def register_defaults(self, defaults: Dict[str, Any]) -> None:
        """Add default values reported when a published key holds no value."""
        with self._lock:
            self.defaults.update(defaults)

    def subscribe(self, key_path: str, callback: Callback) -> Subscription:
        """Subscribe ``callback`` to changes of exactly ``key_path``.

        Args:
            key_path: Dotted key path of a leaf value.
            callback: Called as ``callback(key_path, value)``.

        Returns:
            Subscription: Handle to pass to :meth:`unsubscribe`.

        Raises:
            TypeError: If callback is not callable.
        """
        if not callable(callback):
            raise TypeError(f'Callback for "{key_path}" must be callable, got {type(callback).__name__}.')

        subscription = Subscription(self, key_path, callback)
        with self._lock:
            self._subscribers.setdefault(key_path, []).append(subscription)
        logging.debug(f'Subscribed to "{key_path}".')
        return subscription

    def unsubscribe(self, subscription: Subscription) -> bool:
        """Remove a subscription.

        Returns:
            bool: True if it was removed, False if it was not active.
        """
        with self._lock:
            subscribers = self._subscribers.get(subscription.key_path, [])
            if subscription not in subscribers:
                subscription.active = False
                return False

            subscribers.remove(subscription)
            if not subscribers:
                del self._subscribers[subscription.key_path]
            subscription.active = False

        logging.debug(f'Unsubscribed from "{subscription.key_path}".')
        return True

    def subscriber_count(self, key_path: str) -> int:
        with self._lock:
            return len(self._subscribers.get(key_path, []))

    def clear(self) -> None:
        """Drop every subscription and the recorded failures."""
        with self._lock:
            self.failures.clear()
            for subscribers in self._subscribers.values():
                for subscription in subscribers:
                    subscription.active = False
            self._subscribers.clear()

    def publish(self, key_path: str, value: Optional[Any] = None) -> int:
        """Notify the subscribers of ``key_path``.

        Args:
            key_path: The changed key path.
            value: The value after the change. ``None`` means the key holds no value, in which
                case the registered default, if any, is reported.

        Returns:
            int: The number of callbacks that completed without raising.
        """
        with self._lock:
            snapshot = list(self._subscribers.get(key_path, []))
            if value is None:
                value = self.defaults.get(key_path)

        delivered = 0
        for subscription in snapshot:
            # Unsubscribed by an earlier callback of this publish
            if not subscription.active:
                continue
            try:
                subscription.callback(key_path, value)
                delivered += 1
            except Exception as ex:
                logging.exception(f'Subscriber of "{key_path}" failed: {ex}')
                self.failures.append((key_path, ex))

        signals.valueChanged.emit(key_path)
        return delivered
