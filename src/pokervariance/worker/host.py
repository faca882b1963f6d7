"""Run simulation requests in isolated worker processes.

Every submitted request gets a fresh ``multiprocessing`` process and its own
queue, so concurrent requests never share random state or interleave
results. Cancelling a request terminates its process; there is no
cooperative handshake.
"""

import logging
import multiprocessing as mp
import queue
from collections.abc import Callable, Iterator
from typing import Any

from pokervariance.config import Settings
from pokervariance.errors import EngineFailure, ProtocolViolation
from pokervariance.logging_utils import setup_logging
from pokervariance.worker.handlers import handle_request
from pokervariance.worker.protocol import (
    ErrorMessage,
    ProgressMessage,
    ResultMessage,
    SimulationRequest,
    WorkerMessage,
    is_terminal,
)

logger = logging.getLogger(__name__)

_JOIN_TIMEOUT = 5.0


def _worker_main(request: SimulationRequest, results: Any, settings: Settings) -> None:
    """Entry point of a worker process."""
    setup_logging(settings.log_verbosity)
    handle_request(request, results.put, settings)


class SimulationTask:
    """Handle on one request running in a worker process.

    Iterate :meth:`messages` for progress, or call :meth:`result` to block
    until the request ends. Use as a context manager to make sure the worker
    is stopped.
    """

    def __init__(
        self,
        request: SimulationRequest,
        process: Any,
        results: Any,
        settings: Settings,
    ) -> None:
        self.request = request
        self._process = process
        self._results = results
        self._settings = settings
        self._terminal: ErrorMessage | ResultMessage | None = None
        self._consumed = False
        self._closed = False

    @property
    def request_id(self) -> str:
        return self.request.request_id

    @property
    def done(self) -> bool:
        """True once a terminal message was received or the task was cancelled."""
        return self._terminal is not None

    def _next_message(self) -> WorkerMessage | None:
        """Next raw message, or None when the worker exited without sending one."""
        while True:
            try:
                return self._results.get(timeout=self._settings.poll_interval)
            except queue.Empty:
                if self._process.is_alive():
                    continue
            # Worker gone: one last read for anything flushed just before exit
            try:
                return self._results.get(timeout=self._settings.poll_interval)
            except queue.Empty:
                return None

    def messages(self) -> Iterator[WorkerMessage]:
        """Yield progress messages, then exactly one terminal message.

        Messages tagged with another request id are logged and skipped. If
        the worker dies before answering, a synthetic :class:`ErrorMessage`
        is yielded instead.

        Raises:
            ProtocolViolation: If the stream was already consumed, or the
                worker sent something that is not a worker message.
        """
        if self._consumed:
            raise ProtocolViolation(f"messages of request {self.request_id} already consumed")
        self._consumed = True

        try:
            while self._terminal is None:
                message = self._next_message()
                if message is None:
                    exitcode = self._process.exitcode
                    logger.error(
                        "worker for request %s exited with code %s before replying",
                        self.request_id,
                        exitcode,
                    )
                    message = ErrorMessage(
                        self.request_id,
                        f"worker exited with code {exitcode} before returning a result",
                    )
                elif not isinstance(message, (ProgressMessage, ResultMessage, ErrorMessage)):
                    raise ProtocolViolation(
                        f"unexpected message type {type(message).__name__} "
                        f"for request {self.request_id}"
                    )
                elif message.request_id != self.request_id:
                    logger.warning(
                        "ignoring message for request %s while waiting on %s",
                        message.request_id,
                        self.request_id,
                    )
                    continue

                if is_terminal(message):
                    self._terminal = message
                yield message
        finally:
            self._shutdown()

    def result(self, on_progress: Callable[[float], None] | None = None) -> Any:
        """Block until the request ends and return its payload.

        Args:
            on_progress: Called with each progress value as it arrives.

        Raises:
            EngineFailure: If the request ended with an error or was cancelled.
        """
        if not self._consumed:
            for message in self.messages():
                if isinstance(message, ProgressMessage) and on_progress is not None:
                    on_progress(message.progress)

        terminal = self._terminal
        if isinstance(terminal, ResultMessage):
            return terminal.payload
        if isinstance(terminal, ErrorMessage):
            raise EngineFailure(terminal.error, request_id=self.request_id)
        raise EngineFailure("request ended without a result", request_id=self.request_id)

    def cancel(self) -> None:
        """Stop the worker immediately and discard anything it would have sent."""
        if self._terminal is None:
            logger.info("cancelling request %s", self.request_id)
            self._terminal = ErrorMessage(self.request_id, "request cancelled")
        self._consumed = True
        self._shutdown()

    def _shutdown(self) -> None:
        if self._closed:
            return
        self._closed = True

        if self._process.is_alive():
            if self._terminal is not None and not isinstance(self._terminal, ErrorMessage):
                self._process.join(_JOIN_TIMEOUT)
            if self._process.is_alive():
                self._process.terminate()
        self._process.join(_JOIN_TIMEOUT)

        # Anything still queued arrived after the terminal message
        while True:
            try:
                late = self._results.get_nowait()
            except (queue.Empty, OSError, ValueError):
                break
            logger.debug("ignoring message after terminal for %s: %r", self.request_id, late)
        self._results.close()

    def __enter__(self) -> "SimulationTask":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.cancel()


class SimulationHost:
    """Starts worker processes for simulation requests.

    Example:
        >>> host = SimulationHost()  # doctest: +SKIP
        >>> inputs = SimulationInputs(5.0, 80.0, 10000, seed=1)  # doctest: +SKIP
        >>> request = SimulationRequest.new("simulate", inputs)  # doctest: +SKIP
        >>> with host.submit(request) as task:  # doctest: +SKIP
        ...     results = task.result()
    """

    def __init__(self, settings: Settings | None = None) -> None:
        self.settings = settings or Settings.from_env()
        self._context = mp.get_context(self.settings.start_method)

    def submit(self, request: SimulationRequest) -> SimulationTask:
        """Start a worker for ``request`` and return its task handle."""
        results = self._context.Queue()
        process = self._context.Process(
            target=_worker_main,
            args=(request, results, self.settings),
            name=f"pokervariance-{request.request_id[:8]}",
            daemon=True,
        )
        process.start()
        logger.debug("started worker pid=%s for request %s", process.pid, request.request_id)
        return SimulationTask(request, process, results, self.settings)

    def run(
        self,
        request: SimulationRequest,
        on_progress: Callable[[float], None] | None = None,
    ) -> Any:
        """Submit ``request`` and block for its payload."""
        with self.submit(request) as task:
            return task.result(on_progress)

    def run_inline(self, request: SimulationRequest) -> list[WorkerMessage]:
        """Run ``request`` in the calling process and return every message it emitted."""
        messages: list[WorkerMessage] = []
        handle_request(request, messages.append, self.settings)
        return messages
