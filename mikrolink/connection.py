"""
Blocking RouterOS API connection.

Features:
  - One request/response cycle per query, no pipelining
  - Reply ends at the first !done / !trap / !fatal sentence
  - MD5 challenge-response login (all versions), plain login (6.43+)
  - Handler callbacks receive the connection and the reply chain
  - command() / command_one() helpers returning plain dicts

Usage:
    with Connection.connect("192.168.88.1", username="admin", password="") as conn:
        rows = conn.command("/ip/address/print")
        conn.query("/system/identity/print", [], handler)
"""

import logging
import socket
from typing import Any, Callable

from .api_protocol import (
    API_PORT,
    APIError,
    RouterOSError,
    TransportError,
)
from .framing import SentenceWriter
from .login import LoginHandshake, LoginState
from .reply import TERMINAL_TAGS, ReplyAssembler, ReplyChain

log = logging.getLogger("Connection")

Handler = Callable[["Connection", ReplyChain, Any], Any]


def _collect_rows(conn, replies: ReplyChain, context) -> list[dict]:
    err = replies.error()
    if err is not None:
        msg = err.get("message", f"!{err.status}")
        raise APIError(msg, err.get("category", ""))
    return [r.as_dict() for r in replies.with_status("re")]


class Connection:
    """
    Owns one connected stream. Not safe for concurrent use: callers sharing
    a Connection between threads must serialise queries themselves.
    """

    def __init__(
        self,
        sock,
        limit: int | None = None,
        max_word: int | None = None,
        terminal_tags=TERMINAL_TAGS,
        logger: logging.Logger | None = None,
    ):
        self._sock = sock
        self.max_word = max_word
        self.terminal_tags = frozenset(terminal_tags)
        self.log = logger or log
        self._writer = SentenceWriter(sock, limit, self.log)
        self._connected = sock is not None
        self._login: LoginHandshake | None = None
        self.peer = ""

    # ─── Connection ───────────────────────────────────────────────────────────

    @classmethod
    def connect(
        cls,
        host: str,
        service: str | int | None = None,
        username: str = "admin",
        password: str = "",
        *,
        timeout: float | None = None,
        login_method: str = "challenge",
        logger: logging.Logger | None = None,
        **options,
    ) -> "Connection":
        """
        Open a stream to host:service and log in.

        A failed login closes the stream; the caller never receives an
        unauthenticated connection.
        """
        if not host:
            raise ValueError("Host must not be empty")
        port = service if service is not None else API_PORT
        out = logger or log
        try:
            sock = socket.create_connection((host, port), timeout=timeout)
        except OSError as e:
            out.warning(f"Cannot connect to {host}:{port}: {e}")
            raise TransportError(f"Cannot connect to {host}:{port}: {e}", e.errno) from e

        conn = cls(sock, logger=logger, **options)
        conn.peer = f"{host}:{port}"
        try:
            conn.login(username, password, login_method)
        except Exception:
            conn.close()
            raise
        out.info(f"Connected to {conn.peer} as {username}")
        return conn

    def login(self, username: str, password: str, method: str = "challenge") -> LoginState:
        self._login = LoginHandshake(username, password, method, self.log)
        return self._login.run(self)

    def close(self):
        if self._sock is None:
            return
        self._connected = False
        sock, self._sock = self._sock, None
        try:
            sock.close()
        except OSError as e:
            self.log.debug(f"Error while closing {self.peer or 'stream'}: {e}")
        self.log.info(f"Disconnected from {self.peer or 'router'}")

    disconnect = close

    def __enter__(self) -> "Connection":
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    @property
    def connected(self) -> bool:
        return self._connected

    @property
    def state(self) -> LoginState:
        return self._login.state if self._login else LoginState.INIT

    @property
    def authenticated(self) -> bool:
        return self.state is LoginState.READY

    # ─── Queries ──────────────────────────────────────────────────────────────

    def query(
        self,
        command: str,
        args=(),
        handler: Handler | None = None,
        context: Any = None,
    ):
        """
        Send one sentence, read the complete reply, call
        handler(connection, replies, context) once and return its result.

        Send/receive failures raise before the handler runs. Without a
        handler the reply chain itself is returned.
        """
        if not self._connected:
            raise TransportError("Not connected")

        try:
            self._writer.write(command, args)
        except TransportError:
            self._mark_broken()
            raise

        try:
            replies = ReplyAssembler(self.terminal_tags, self.log).receive(self._sock, self.max_word)
        except RouterOSError:
            self._mark_broken()
            raise

        fatal = replies.with_status("fatal")
        if fatal:
            # router closes the connection after !fatal
            self.log.warning(f"!fatal from {self.peer or 'router'}: {fatal[0].get('message', '')}")
            self.close()

        if handler is None:
            return replies
        try:
            return handler(self, replies, context)
        finally:
            replies.release()

    def command(
        self,
        path: str,
        params: dict | None = None,
        queries: list[str] | None = None,
    ) -> list[dict]:
        """Execute a command and return all !re responses."""
        return self.query(path, self._build_words(params, queries), _collect_rows)

    def command_one(self, path: str, params: dict | None = None) -> dict | None:
        """Execute and return first result or None."""
        results = self.command(path, params)
        return results[0] if results else None

    # ─── Internal ─────────────────────────────────────────────────────────────

    @staticmethod
    def _build_words(params: dict | None, queries: list[str] | None) -> list[str]:
        words = []
        if params:
            for k, v in params.items():
                if v == "" or v is None:
                    words.append(f"={k}=")
                else:
                    words.append(f"={k}={v}")
        if queries:
            words.extend(queries)
        return words

    def _mark_broken(self):
        if self._connected:
            self.log.warning(f"Connection to {self.peer or 'router'} is no longer usable")
        self.close()
