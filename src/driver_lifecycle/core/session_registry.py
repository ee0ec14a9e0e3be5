# src/driver_lifecycle/core/session_registry.py
"""
Session Registry

Binds at most one live browser session to each worker and keeps a global
table of active sessions for cross-worker sweeps.

Per-worker slot state machine::

    Empty -> Initializing -> Active -> Closing -> Empty

Both the worker slots and the global table are plain dicts mutated only
under one lock. Creation and teardown run outside the lock, so a slow
browser never blocks other workers. A session leaves the global table in
the same critical section that marks it Closing; whoever removes it is
the only one who closes it.
"""

import atexit
import threading
from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Hashable, Iterable, List, Optional
from uuid import uuid4

from driver_lifecycle.config.settings import Settings, get_settings
from driver_lifecycle.core.browser_constants import Engine, ExecutionMode
from driver_lifecycle.core.capabilities import CapabilityBuilder
from driver_lifecycle.core.driver_factory import DriverFactory
from driver_lifecycle.core.exceptions import (
    DriverConfigurationException,
    SessionCreationException,
    SessionStateException,
    SessionTeardownException,
)
from driver_lifecycle.core.instrumentation import DriverEventListener, EventFiringHandle, instrument
from driver_lifecycle.core.logger import (
    LoggingContext,
    bind_session_context,
    clear_session_context,
    get_logger,
    get_performance_timer,
    setup_logging_from_settings,
)
from driver_lifecycle.core.session_configurator import SessionConfigurator


class SessionState(str, Enum):
    INITIALIZING = "initializing"
    ACTIVE = "active"
    CLOSING = "closing"
    CLOSED = "closed"


@dataclass
class Session:
    """A live browser session owned by one worker."""

    worker_id: Hashable
    engine: Engine
    mode: ExecutionMode
    handle: Optional[EventFiringHandle] = None
    state: SessionState = SessionState.INITIALIZING
    session_id: str = field(default_factory=lambda: uuid4().hex[:12])
    created_at: datetime = field(default_factory=datetime.now)

    @property
    def age_seconds(self) -> float:
        return (datetime.now() - self.created_at).total_seconds()

    def describe(self) -> Dict[str, Any]:
        return {
            "worker_id": self.worker_id,
            "session_id": self.session_id,
            "engine": self.engine.value,
            "mode": self.mode.value,
            "state": self.state.value,
            "created_at": self.created_at.isoformat(),
            "age_seconds": round(self.age_seconds, 1),
            "handle": self.handle.describe() if self.handle is not None else None,
        }


class SessionRegistry:
    """
    Creates, binds and tears down sessions per worker.

    ``worker_id`` defaults to the calling thread's identity everywhere.

    Example:
        >>> registry = SessionRegistry()
        >>> session = registry.acquire()
        >>> session.handle.navigate("http://localhost:8080")
        >>> registry.release()
    """

    def __init__(
            self,
            settings: Optional[Settings] = None,
            factory: Optional[DriverFactory] = None,
            capability_builder: Optional[CapabilityBuilder] = None,
            configurator: Optional[SessionConfigurator] = None,
            listeners: Optional[Iterable[DriverEventListener]] = None,
            max_parallel_close: int = 8
    ):
        self.settings = settings or get_settings()
        self.capability_builder = capability_builder or CapabilityBuilder()
        self.factory = factory or DriverFactory(self.settings, self.capability_builder)
        self.configurator = configurator or SessionConfigurator()
        self.listeners = list(listeners) if listeners is not None else None
        self.max_parallel_close = max_parallel_close

        self._lock = threading.RLock()
        self._local: Dict[Hashable, Session] = {}
        self._active: Dict[Hashable, Session] = {}

        self.logger = get_logger("session_registry")

    @staticmethod
    def _worker(worker_id: Optional[Hashable]) -> Hashable:
        return threading.get_ident() if worker_id is None else worker_id

    # ------------------------------------------------------------------
    # Acquire
    # ------------------------------------------------------------------

    def acquire(
            self,
            worker_id: Optional[Hashable] = None,
            browser: Optional[str] = None,
            mode: Optional[str] = None,
            endpoint: Optional[str] = None
    ) -> Session:
        """
        Return the worker's active session, creating one if the slot is empty.

        Args:
            worker_id: Owning worker (defaults to the current thread)
            browser: Engine override (defaults to ``web.browser``)
            mode: Execution mode override (defaults to ``remote.execution_mode``)
            endpoint: Endpoint override for remote modes

        Raises:
            DriverConfigurationException: Invalid engine, mode or endpoint
            SessionCreationException: A pipeline stage failed; the slot is empty
            SessionStateException: The worker's session is still initializing
        """
        wid = self._worker(worker_id)
        engine = Engine.parse(browser or self.settings.web.browser)
        execution_mode = ExecutionMode.parse(mode or self.settings.remote.execution_mode)

        with self._lock:
            existing = self._local.get(wid)
            if existing is not None and existing.state is SessionState.ACTIVE:
                return existing
            if existing is not None and existing.state is SessionState.INITIALIZING:
                raise SessionStateException(
                    f"Session for worker {wid} is still initializing",
                    worker_id=wid,
                    state=existing.state.value
                )
            # A Closing slot belongs to a sweep in progress; the worker gets a fresh one.
            session = Session(worker_id=wid, engine=engine, mode=execution_mode)
            self._local[wid] = session

        try:
            handle = self._create(session, endpoint)
        except BaseException:
            # Interrupts included; a slot left Initializing would block this worker for good.
            with self._lock:
                if self._local.get(wid) is session:
                    del self._local[wid]
            raise

        with self._lock:
            session.handle = handle
            session.state = SessionState.ACTIVE
            self._active[wid] = session

        if worker_id is None:
            bind_session_context(wid, session.session_id)

        self.logger.info(
            "Session acquired",
            worker_id=wid,
            session_id=session.session_id,
            engine=engine.value,
            mode=execution_mode.value,
            active_sessions=self.active_count()
        )
        return session

    def _create(self, session: Session, endpoint: Optional[str]) -> EventFiringHandle:
        """Run capabilities -> create -> configure -> instrument."""
        stage = "capabilities"
        handle = None

        with LoggingContext(worker_id=session.worker_id, session_id=session.session_id):
            try:
                with get_performance_timer("acquire_session") as timer:
                    timer.add_metric("engine", session.engine.value)
                    timer.add_metric("mode", session.mode.value)

                    capabilities = self.capability_builder.build(
                        session.engine, self.settings.web.headless, self.settings
                    )

                    stage = "create"
                    handle = self.factory.create(
                        session.engine, session.mode, endpoint=endpoint, capabilities=capabilities
                    )

                    stage = "configure"
                    self.configurator.configure(handle, self.settings)

                    stage = "instrument"
                    return instrument(handle, self.listeners)

            except DriverConfigurationException:
                self._discard(handle, session)
                raise
            except Exception as e:
                self._discard(handle, session)
                raise SessionCreationException(
                    f"Session creation failed at stage '{stage}': {e}",
                    stage=stage,
                    engine=session.engine.value,
                    mode=session.mode.value,
                    worker_id=session.worker_id,
                    original_exception=e
                ) from e
            except BaseException:
                self._discard(handle, session)
                raise

    def _discard(self, handle, session: Session) -> None:
        if handle is None:
            return
        try:
            handle.close()
        except Exception as e:
            self.logger.warning(
                "Failed to close partially created session",
                worker_id=session.worker_id,
                session_id=session.session_id,
                error=str(e)
            )

    # ------------------------------------------------------------------
    # Release
    # ------------------------------------------------------------------

    def release(self, worker_id: Optional[Hashable] = None) -> bool:
        """
        Close the worker's session. Never raises.

        Returns:
            True if a session was closed, False if the slot was empty
        """
        wid = self._worker(worker_id)

        with self._lock:
            session = self._active.pop(wid, None)
            if session is None:
                return False
            session.state = SessionState.CLOSING

        self._close(session)

        with self._lock:
            if self._local.get(wid) is session:
                del self._local[wid]

        if worker_id is None:
            clear_session_context()

        self.logger.info(
            "Session released",
            worker_id=wid,
            session_id=session.session_id,
            active_sessions=self.active_count()
        )
        return True

    def release_all(self) -> int:
        """
        Close every active session, whichever worker owns it.

        Sessions are closed in parallel. Safe to call from any thread and
        when nothing is active.

        Returns:
            Number of sessions closed
        """
        with self._lock:
            claimed = list(self._active.values())
            self._active.clear()
            for session in claimed:
                session.state = SessionState.CLOSING

        if not claimed:
            return 0

        workers = min(len(claimed), max(1, self.max_parallel_close))
        try:
            with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="session-sweep") as pool:
                list(pool.map(self._close, claimed))
        except RuntimeError as e:
            # No new threads during interpreter shutdown; close the rest one by one.
            self.logger.debug("Parallel sweep unavailable, closing sequentially", error=str(e))
            for session in claimed:
                if session.state is not SessionState.CLOSED:
                    self._close(session)

        with self._lock:
            for session in claimed:
                if self._local.get(session.worker_id) is session:
                    del self._local[session.worker_id]

        self.logger.info("All sessions released", count=len(claimed))
        return len(claimed)

    def _close(self, session: Session) -> None:
        try:
            session.handle.close()
        except Exception as e:
            error = SessionTeardownException(
                f"Failed to close session: {e}",
                worker_id=session.worker_id,
                session_id=session.session_id,
                original_exception=e
            )
            self.logger.warning("Session teardown failed", **error.to_dict())
        finally:
            session.state = SessionState.CLOSED

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    def is_active(self, worker_id: Optional[Hashable] = None) -> bool:
        with self._lock:
            return self._worker(worker_id) in self._active

    def active_count(self) -> int:
        with self._lock:
            return len(self._active)

    def get_session(self, worker_id: Optional[Hashable] = None) -> Session:
        """
        Raises:
            SessionStateException: If the worker has no active session
        """
        wid = self._worker(worker_id)
        with self._lock:
            session = self._active.get(wid)
        if session is None:
            raise SessionStateException(
                f"No active session for worker {wid}; call acquire() first",
                worker_id=wid
            )
        return session

    def get_handle(self, worker_id: Optional[Hashable] = None) -> EventFiringHandle:
        return self.get_session(worker_id).handle

    def current_engine(self, worker_id: Optional[Hashable] = None) -> Engine:
        return self.get_session(worker_id).engine

    def describe(self) -> List[Dict[str, Any]]:
        """Snapshot of all active sessions for diagnostics."""
        with self._lock:
            sessions = list(self._active.values())
        return [session.describe() for session in sessions]

    @contextmanager
    def session(self, worker_id: Optional[Hashable] = None, **overrides):
        """
        Acquire for the duration of a block, then release.

        Example:
            >>> with registry.session(browser="firefox") as session:
            ...     session.handle.navigate("http://localhost:8080")
        """
        acquired = self.acquire(worker_id, **overrides)
        try:
            yield acquired
        finally:
            self.release(worker_id)


# Global registry instance
_session_registry: Optional[SessionRegistry] = None
_session_registry_lock = threading.Lock()
_shutdown_hook_registered = False


def _register_shutdown_hook() -> None:
    """
    Sweep all sessions when the interpreter exits.

    Threading exit hooks run in reverse registration order before
    ``concurrent.futures`` stops accepting work, so the sweep still has
    its executors. Plain ``atexit`` hooks run too late for that.
    """
    global _shutdown_hook_registered

    if _shutdown_hook_registered:
        return
    try:
        threading._register_atexit(release_all_sessions)
    except RuntimeError:
        # Shutdown already in progress.
        atexit.register(release_all_sessions)
    _shutdown_hook_registered = True


def get_session_registry(settings: Optional[Settings] = None) -> SessionRegistry:
    """
    Get the process-wide registry, creating it on first use.

    The first call configures logging from settings and registers the
    exit sweep.
    """
    global _session_registry

    with _session_registry_lock:
        if _session_registry is None:
            settings = settings or get_settings()
            setup_logging_from_settings(settings)
            _session_registry = SessionRegistry(settings)
            _register_shutdown_hook()
        return _session_registry


def reset_session_registry() -> int:
    """Release everything and drop the global registry."""
    global _session_registry

    with _session_registry_lock:
        registry, _session_registry = _session_registry, None

    if registry is None:
        return 0
    return registry.release_all()


def acquire_session(worker_id: Optional[Hashable] = None, **overrides) -> Session:
    return get_session_registry().acquire(worker_id, **overrides)


def release_session(worker_id: Optional[Hashable] = None) -> bool:
    return get_session_registry().release(worker_id)


def release_all_sessions() -> int:
    if _session_registry is None:
        return 0
    return _session_registry.release_all()
