"""Serve a JSON-RPC message server over a pair of line-oriented streams."""

from __future__ import annotations

import dataclasses
import io
import json
import logging
import queue
import signal
import sys
import threading
from typing import IO, Any, Callable, Dict, Optional, Protocol

PARSE_ERROR = -32700
NOTIFICATION_BUFFER = 100
_POLL_INTERVAL = 0.05
_EOF = object()

Context = Dict[str, Any]
ContextFunc = Callable[[Context], Context]


class SessionServer(Protocol):
    """The message server that a :class:`StdioServer` drives."""

    def register_session(self, context: Context, session: "StdioSession") -> None: ...

    def unregister_session(self, context: Context, session_id: str) -> None: ...

    def with_context(self, context: Context, session: "StdioSession") -> Context: ...

    def handle_message(self, context: Context, message: Any) -> Any: ...


class SessionRegistrationError(RuntimeError):
    """Raised when the wrapped server refuses the stdio session."""


class StdioSession:
    """The single client session of a stdio transport."""

    session_id = "stdio"

    def __init__(self) -> None:
        self.notifications: "queue.Queue[Any]" = queue.Queue(maxsize=NOTIFICATION_BUFFER)
        self._initialized = threading.Event()

    def initialize(self) -> None:
        """Mark the session as initialized."""
        self._initialized.set()

    @property
    def initialized(self) -> bool:
        return self._initialized.is_set()

    def send(self, notification: Any) -> None:
        """Queue a notification for delivery to the client; blocks when the buffer is full."""
        self.notifications.put(notification)


def _to_json(value: Any) -> Any:
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return dataclasses.asdict(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def _is_binary(stream: Any) -> bool:
    return isinstance(stream, (io.RawIOBase, io.BufferedIOBase))


class StdioServer:
    """Reads JSON-RPC messages line by line and writes the server's replies."""

    def __init__(
        self,
        server: SessionServer,
        error_logger: Optional[logging.Logger] = None,
        context_func: Optional[ContextFunc] = None,
    ) -> None:
        self.server = server
        self.error_logger = error_logger or logging.getLogger(__name__)
        self.context_func = context_func
        self.session = StdioSession()
        self._stopped = threading.Event()
        self._write_lock = threading.Lock()

    def stop(self) -> None:
        """Ask a running :meth:`listen` to return."""
        self._stopped.set()

    def listen(self, stdin: IO[Any], stdout: IO[Any], context: Optional[Context] = None) -> None:
        """Serve messages from ``stdin`` until end of input or :meth:`stop`.

        Raises the underlying error when reading input or writing a reply fails.
        """
        base = dict(context or {})
        try:
            self.server.register_session(base, self.session)
        except Exception as exc:
            raise SessionRegistrationError(f"register session: {exc}") from exc

        try:
            ctx = self.server.with_context(base, self.session)
            if self.context_func is not None:
                ctx = self.context_func(ctx)

            done = threading.Event()
            notifier = threading.Thread(
                target=self._forward_notifications, args=(stdout, done), daemon=True
            )
            notifier.start()
            try:
                self._process_input(ctx, stdin, stdout)
            finally:
                done.set()
                notifier.join()
        finally:
            self.server.unregister_session(base, self.session.session_id)

    def process_message(self, context: Context, line: str, writer: IO[Any]) -> None:
        """Handle one input line and write the reply, if there is one."""
        try:
            message = json.loads(line)
        except json.JSONDecodeError:
            self.write_message(
                {"jsonrpc": "2.0", "id": None, "error": {"code": PARSE_ERROR, "message": "Parse error"}},
                writer,
            )
            return

        response = self.server.handle_message(context, message)
        if response is not None:
            self.write_message(response, writer)

    def write_message(self, message: Any, writer: IO[Any]) -> None:
        """Write ``message`` as compact JSON followed by a newline."""
        text = json.dumps(message, separators=(",", ":"), default=_to_json) + "\n"
        with self._write_lock:
            writer.write(text.encode("utf-8") if _is_binary(writer) else text)
            flush = getattr(writer, "flush", None)
            if flush is not None:
                flush()

    def _forward_notifications(self, stdout: IO[Any], done: threading.Event) -> None:
        while not (done.is_set() or self._stopped.is_set()):
            try:
                notification = self.session.notifications.get(timeout=_POLL_INTERVAL)
            except queue.Empty:
                continue
            try:
                self.write_message(notification, stdout)
            except (OSError, TypeError, ValueError) as exc:
                self.error_logger.error("Error writing notification: %s", exc)

    def _read_lines(self, stdin: IO[Any], lines: "queue.Queue[Any]") -> None:
        while True:
            try:
                line = stdin.readline()
                if isinstance(line, (bytes, bytearray)):
                    line = bytes(line).decode("utf-8")
            except Exception as exc:  # handed to the serving loop
                lines.put(exc)
                return
            if not line.endswith("\n"):
                lines.put(_EOF)
                return
            lines.put(line)

    def _process_input(self, context: Context, stdin: IO[Any], stdout: IO[Any]) -> None:
        lines: "queue.Queue[Any]" = queue.Queue()
        threading.Thread(target=self._read_lines, args=(stdin, lines), daemon=True).start()

        while not self._stopped.is_set():
            try:
                item = lines.get(timeout=_POLL_INTERVAL)
            except queue.Empty:
                continue
            if item is _EOF:
                return
            if isinstance(item, BaseException):
                self.error_logger.error("Error reading input: %s", item)
                raise item
            try:
                self.process_message(context, item, stdout)
            except Exception as exc:
                self.error_logger.error("Error handling message: %s", exc)
                raise


def serve_stdio(
    server: SessionServer,
    error_logger: Optional[logging.Logger] = None,
    context_func: Optional[ContextFunc] = None,
) -> None:
    """Serve ``server`` over the process's standard streams.

    SIGTERM and SIGINT stop the server gracefully when called from the main thread.
    """
    stdio = StdioServer(server, error_logger=error_logger, context_func=context_func)

    previous: dict = {}
    if threading.current_thread() is threading.main_thread():
        for signum in (signal.SIGTERM, signal.SIGINT):
            previous[signum] = signal.signal(signum, lambda _signum, _frame: stdio.stop())
    try:
        stdio.listen(sys.stdin, sys.stdout)
    finally:
        for signum, handler in previous.items():
            signal.signal(signum, handler)