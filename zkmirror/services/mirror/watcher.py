"""
Leaf Watchers

WatchRegistrar walks the subtree once and starts one ChangeReactor per
leaf. Each reactor holds a one-shot ZooKeeper data watch, and when it
fires asks for a full rebuild, then re-arms.

The set of watched leaves is fixed when register() runs. Leaves added
later, or leaves that later gain children, are not picked up.
"""

import threading
from enum import Enum
from typing import Callable

from zkmirror.common.exceptions import ZkMirrorError
from zkmirror.common.logging_setup import get_service_logger, log_node_change

from .client import NodeEvent, StoreClient
from .materializer import iter_leaves

logger = get_service_logger("mirror.watcher")

ChangeHandler = Callable[[str, NodeEvent], None]

# Join timeout per reactor on shutdown
STOP_JOIN_TIMEOUT_SECONDS = 5.0


class ReactorState(str, Enum):
    """Change reactor lifecycle"""
    IDLE = "idle"
    ARMED = "armed"
    REACTING = "reacting"
    STOPPED = "stopped"


class ChangeReactor:
    """
    Watches a single leaf for the lifetime of the process (or until stopped).

    ARMED -> (notification) -> REACTING -> ARMED ...

    Failures inside on_change are logged and swallowed; the previous
    snapshot stays in place until a later event rebuilds successfully.
    """

    def __init__(
        self,
        path: str,
        client: StoreClient,
        on_change: ChangeHandler,
        stop_event: threading.Event,
        rearm_delay: float = 1.0,
    ):
        self.path = path
        self.client = client
        self.on_change = on_change
        self.rearm_delay = rearm_delay

        self._stop_event = stop_event
        self._fired = threading.Event()
        self._last_event: NodeEvent | None = None
        self._thread: threading.Thread | None = None

        self.state = ReactorState.IDLE
        self.fire_count = 0
        self.failure_count = 0

    @property
    def alive(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self._thread is not None:
            return
        self._thread = threading.Thread(
            target=self._run,
            name=f"zkmirror-watch:{self.path}",
            daemon=True,
        )
        self._thread.start()

    def cancel(self) -> None:
        """Wake the reactor so it notices the stop event"""
        self._fired.set()

    def join(self, timeout: float | None = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout)

    def _on_event(self, event: NodeEvent) -> None:
        # Runs on the kazoo event thread; only hand the event over
        self._last_event = event
        self._fired.set()

    def _arm(self) -> bool:
        self._fired.clear()
        try:
            self.client.get_watch(self.path, self._on_event)
        except ZkMirrorError as e:
            logger.error(
                f"Cannot watch {self.path}, retrying in {self.rearm_delay}s: {e}",
                extra={"path": self.path},
            )
            return False
        self.state = ReactorState.ARMED
        return True

    def _run(self) -> None:
        while not self._stop_event.is_set():
            if not self._arm():
                self._stop_event.wait(self.rearm_delay)
                continue
            if self._stop_event.is_set():
                break

            self._fired.wait()
            if self._stop_event.is_set():
                break

            self.state = ReactorState.REACTING
            self.fire_count += 1
            event = self._last_event or NodeEvent(type="NONE", path=self.path)
            log_node_change(logger, self.path, event.type)

            try:
                self.on_change(self.path, event)
            except Exception:
                self.failure_count += 1
                logger.exception(
                    f"Rebuild after change on {self.path} failed, keeping previous snapshot",
                    extra={"path": self.path},
                )

        self.state = ReactorState.STOPPED


class WatchRegistry:
    """Leaf path -> reactor, with one shared stop event"""

    def __init__(self):
        self.stop_event = threading.Event()
        self._reactors: dict[str, ChangeReactor] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._reactors)

    def __contains__(self, path: str) -> bool:
        with self._lock:
            return path in self._reactors

    def get(self, path: str) -> ChangeReactor | None:
        with self._lock:
            return self._reactors.get(path)

    def paths(self) -> list[str]:
        with self._lock:
            return sorted(self._reactors)

    def add(self, reactor: ChangeReactor) -> bool:
        """Register a reactor; False if its path is already watched"""
        with self._lock:
            if reactor.path in self._reactors:
                return False
            self._reactors[reactor.path] = reactor
            return True

    def stop_all(self, timeout: float = STOP_JOIN_TIMEOUT_SECONDS) -> None:
        self.stop_event.set()
        with self._lock:
            reactors = list(self._reactors.values())
        for reactor in reactors:
            reactor.cancel()
        for reactor in reactors:
            reactor.join(timeout)
        logger.info(f"Stopped {len(reactors)} watchers")

    def get_stats(self) -> dict:
        with self._lock:
            reactors = list(self._reactors.values())
        return {
            "watch_count": len(reactors),
            "fire_count": sum(r.fire_count for r in reactors),
            "failure_count": sum(r.failure_count for r in reactors),
        }


class WatchRegistrar:
    """Discovers every leaf under a root and starts a reactor for each"""

    def __init__(
        self,
        client: StoreClient,
        on_change: ChangeHandler,
        registry: WatchRegistry,
        rearm_delay: float = 1.0,
    ):
        self.client = client
        self.on_change = on_change
        self.registry = registry
        self.rearm_delay = rearm_delay

    def register(self, root_path: str) -> int:
        """
        Start watching every leaf under root_path.

        Returns:
            Number of reactors started

        Raises:
            TraversalError: listing the root failed; nothing is watched
        """
        started = 0
        skipped = 0

        for path, error in iter_leaves(self.client, root_path):
            if error is not None:
                skipped += 1
                logger.warning(
                    f"Skipping branch {path}: {error}",
                    extra={"path": path},
                )
                continue

            reactor = ChangeReactor(
                path,
                self.client,
                self.on_change,
                self.registry.stop_event,
                rearm_delay=self.rearm_delay,
            )
            if self.registry.add(reactor):
                reactor.start()
                started += 1

        if started == 0 and skipped == 0:
            logger.warning(f"No leaves found under {root_path}, nothing to watch")

        logger.info(
            f"Watching {started} leaves under {root_path}",
            extra={"path": root_path, "leaf_count": started, "skipped": skipped},
        )
        return started
