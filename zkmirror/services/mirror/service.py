"""
Mirror Service

Keeps a local JSON document in step with a ZooKeeper subtree:
- Connects and authenticates
- Materializes the subtree and writes the document
- Loads the document into a SnapshotStore for lookups
- Watches every leaf and rebuilds on change (one rebuild at a time)
- Optional health server for local monitoring
"""

import asyncio
import signal
import threading
from datetime import datetime, timezone
from pathlib import Path

from aiohttp import web

from zkmirror.common.config import (
    DEFAULT_SECTION,
    MirrorSettings,
    load_descriptor,
    load_embedded,
)
from zkmirror.common.exceptions import ZkMirrorError
from zkmirror.common.logging_setup import get_service_logger

from .client import KazooStoreClient, NodeEvent, StoreClient
from .materializer import materialize
from .snapshot import SnapshotStore
from .watcher import WatchRegistrar, WatchRegistry
from .writer import DocumentWriter

logger = get_service_logger("mirror")

HEALTH_HOST = "127.0.0.1"


class MirrorService:
    """
    Mirror Service

    start() runs the whole startup path synchronously and raises on any
    failure; once it returns, the snapshot is loaded and every leaf known
    at that moment is watched. Rebuilds triggered by watchers are
    serialized, and their failures never propagate out of the watchers.
    """

    def __init__(
        self,
        settings: MirrorSettings,
        client: StoreClient | None = None,
        snapshot: SnapshotStore | None = None,
    ):
        self.settings = settings
        self.client = client or KazooStoreClient(
            hosts=settings.hosts,
            scheme=settings.scheme,
            auth=settings.auth,
            connect_timeout=settings.connect_timeout,
        )
        self.snapshot = snapshot or SnapshotStore()
        self.writer = DocumentWriter(settings.output_path, root_key=settings.root_key)
        self.registry = WatchRegistry()
        self.registrar = WatchRegistrar(
            self.client,
            self._handle_change,
            self.registry,
            rearm_delay=settings.rearm_delay,
        )

        # One rebuild (materialize + write + reload) at a time
        self._rebuild_lock = threading.Lock()
        self._rebuild_count = 0
        self._last_rebuild_at: datetime | None = None
        self._last_error: str | None = None

        self._start_time = datetime.now(timezone.utc)
        self._running = False

        # Health server
        self._health_app: web.Application | None = None
        self._health_runner: web.AppRunner | None = None
        self._shutdown_event: asyncio.Event | None = None

    @property
    def output_path(self) -> Path:
        return self.settings.output_path

    @property
    def running(self) -> bool:
        return self._running

    def start(self, watch: bool = True) -> None:
        """
        Connect, build the first snapshot, and register leaf watchers.

        Raises:
            StoreConnectionError: the ensemble is unreachable or rejects auth
            TraversalError: a node listing failed (usually bad auth or path)
            ReadError / WriteError: the first document could not be built
        """
        logger.info(
            f"Starting mirror of {self.settings.root_path} -> {self.output_path}",
            extra={"path": self.settings.root_path, "output": str(self.output_path)},
        )

        self.client.connect()
        try:
            self.rebuild()
            if watch:
                self.registrar.register(self.settings.root_path)
        except ZkMirrorError:
            self.client.close()
            raise

        self._running = True
        self._start_time = datetime.now(timezone.utc)

    def stop(self) -> None:
        """Cancel every watcher and close the connection"""
        logger.info("Stopping mirror")
        self.registry.stop_all()
        self.client.close()
        self._running = False

    def rebuild(self) -> int:
        """
        Re-materialize the whole subtree, persist it and reload the snapshot.

        Returns:
            Number of bytes written
        """
        with self._rebuild_lock:
            try:
                document = materialize(
                    self.client,
                    self.settings.root_path,
                    root_key=self.settings.root_key,
                )
                written = self.writer.write(document)
                self.snapshot.load(self.output_path)
            except ZkMirrorError as e:
                self._last_error = e.message
                raise

            self._rebuild_count += 1
            self._last_rebuild_at = datetime.now(timezone.utc)
            self._last_error = None

        logger.info(
            f"Rebuilt {self.output_path} ({written} bytes)",
            extra={"path": self.settings.root_path, "bytes": written},
        )
        return written

    def _handle_change(self, path: str, event: NodeEvent) -> None:
        self.rebuild()

    def get_stats(self) -> dict:
        uptime = (datetime.now(timezone.utc) - self._start_time).total_seconds()
        return {
            "status": "healthy" if self._running else "unhealthy",
            "service": "zkmirror",
            "uptime": int(uptime),
            "root_path": self.settings.root_path,
            "output_path": str(self.output_path),
            "snapshot_loaded": self.snapshot.is_loaded,
            "rebuild_count": self._rebuild_count,
            "last_rebuild_at": self._last_rebuild_at.isoformat() if self._last_rebuild_at else None,
            "last_error": self._last_error,
            **self.registry.get_stats(),
        }

    # -- Long-running mode -------------------------------------------------

    async def serve(self, health_port: int | None = None) -> None:
        """Start, then block until SIGINT/SIGTERM"""
        self._shutdown_event = asyncio.Event()

        await asyncio.to_thread(self.start)

        if health_port:
            await self._start_health_server(health_port)

        self._setup_signal_handlers()
        await self._shutdown_event.wait()

    async def shutdown(self) -> None:
        await self._stop_health_server()
        await asyncio.to_thread(self.stop)

    def _setup_signal_handlers(self) -> None:
        """Setup graceful shutdown signal handlers"""
        loop = asyncio.get_running_loop()

        for sig in (signal.SIGTERM, signal.SIGINT):
            try:
                loop.add_signal_handler(sig, self._handle_shutdown)
            except NotImplementedError:
                # Windows doesn't support add_signal_handler
                signal.signal(sig, lambda s, f: loop.call_soon_threadsafe(self._handle_shutdown))

    def _handle_shutdown(self) -> None:
        logger.info("Received shutdown signal")
        if self._shutdown_event is not None:
            self._shutdown_event.set()

    async def _start_health_server(self, port: int) -> None:
        """Start the health check HTTP server"""
        self._health_app = web.Application()
        self._health_app.router.add_get("/health", self._health_handler)
        self._health_app.router.add_post("/rebuild", self._rebuild_handler)

        self._health_runner = web.AppRunner(self._health_app)
        await self._health_runner.setup()

        site = web.TCPSite(self._health_runner, HEALTH_HOST, port)
        await site.start()

        logger.info(f"Health server started on port {port}")

    async def _stop_health_server(self) -> None:
        if self._health_runner:
            await self._health_runner.cleanup()
            self._health_runner = None

    async def _health_handler(self, request: web.Request) -> web.Response:
        stats = self.get_stats()
        stats["timestamp"] = datetime.now(timezone.utc).isoformat()
        return web.json_response(stats)

    async def _rebuild_handler(self, request: web.Request) -> web.Response:
        """Force a rebuild outside the watch cycle"""
        try:
            written = await asyncio.to_thread(self.rebuild)
        except ZkMirrorError as e:
            logger.error(f"Forced rebuild failed: {e}")
            return web.json_response({"success": False, "error": e.message}, status=500)
        return web.json_response({"success": True, "bytes": written})


def setup_from_descriptor(
    path: str | Path,
    client: StoreClient | None = None,
    watch: bool = True,
) -> MirrorService:
    """Load a standalone descriptor file and start mirroring"""
    service = MirrorService(load_descriptor(path), client=client)
    service.start(watch=watch)
    return service


def setup_from_host_config(
    host_config: dict,
    section: str = DEFAULT_SECTION,
    client: StoreClient | None = None,
    watch: bool = True,
) -> MirrorService:
    """Use the settings nested in a host application's config and start mirroring"""
    service = MirrorService(load_embedded(host_config, section), client=client)
    service.start(watch=watch)
    return service
