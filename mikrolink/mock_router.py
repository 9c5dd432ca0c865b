"""
Mock Router – an in-memory, socket-like RouterOS API peer.

Speaks the server side of the protocol with canned data, so a Connection can
be driven without a real router. `python -m mikrolink` uses it when
MIKROTIK_MOCK=1 is set (demo mode); the test suite uses it too:

    router = MockRouter(username="admin", password="secret")
    conn = Connection(router)
    conn.login("admin", "secret")
    conn.command("/interface/print")

Replies end with a single terminal sentence: errors are answered with one
!trap sentence and nothing after it.
"""

import errno
import logging
import os

from .api_protocol import (
    ProtocolError,
    build_sentence,
    decode_sentence,
    md5_challenge_response,
)

log = logging.getLogger("MockRouter")

DEFAULT_DATA = {
    "/system/identity/print": [{"name": "MikroTik"}],
    "/system/resource/print": [{
        "uptime": "2d04:33:00", "version": "6.49.10 (long-term)", "cpu-load": "7",
        "free-memory": "41943040", "total-memory": "268435456",
        "board-name": "RB4011iGS+", "architecture-name": "arm",
    }],
    "/interface/print": [
        {".id": "*1", "name": "ether1", "type": "ether", "running": "true",
         "disabled": "false", "comment": "WAN"},
        {".id": "*2", "name": "ether2", "type": "ether", "running": "true",
         "disabled": "false", "comment": "LAN"},
        {".id": "*3", "name": "wlan1", "type": "wlan", "running": "true",
         "disabled": "false", "comment": "WiFi 2.4GHz"},
    ],
    "/ip/address/print": [
        {".id": "*1", "address": "192.168.88.1/24", "network": "192.168.88.0",
         "interface": "ether2"},
    ],
}


class MockRouter:

    def __init__(
        self,
        username: str = "admin",
        password: str = "",
        challenge: str | None = None,
        data: dict | None = None,
        plain_login: bool = True,
        recv_chunk: int | None = None,
        send_chunk: int | None = None,
    ):
        self.username = username
        self.password = password
        self.challenge = challenge or os.urandom(16).hex()
        self.data = DEFAULT_DATA if data is None else data
        self.plain_login = plain_login
        self.recv_chunk = recv_chunk
        self.send_chunk = send_chunk
        self.logged_in = False
        self.closed = False
        self.requests: list[list[str]] = []
        self._in = bytearray()
        self._out = bytearray()

    # ─── Socket interface ─────────────────────────────────────────────────────

    def send(self, data) -> int:
        if self.closed:
            raise OSError(errno.EBADF, "Bad file descriptor")
        n = len(data) if self.send_chunk is None else min(len(data), self.send_chunk)
        self._in += bytes(data[:n])
        self._process()
        return n

    def recv(self, size: int) -> bytes:
        if self.closed:
            raise OSError(errno.EBADF, "Bad file descriptor")
        if self.recv_chunk is not None:
            size = min(size, self.recv_chunk)
        chunk = bytes(self._out[:size])
        del self._out[:size]
        return chunk  # b"" once nothing is pending, like a closed peer

    def close(self):
        self.closed = True

    # ─── Scripting ────────────────────────────────────────────────────────────

    def reply(self, status: str, params: dict | None = None, tag: str | None = None):
        words = [f"!{status}"]
        for k, v in (params or {}).items():
            words.append(f"={k}={v}")
        if tag is not None:
            words.append(f".tag={tag}")
        self._out += build_sentence(words)

    def push_raw(self, data: bytes):
        self._out += data

    @property
    def pending(self) -> int:
        return len(self._out)

    # ─── Request handling ─────────────────────────────────────────────────────

    def _process(self):
        while self._in:
            try:
                words, offset = decode_sentence(self._in)
            except BufferError:
                return  # need more data
            except ProtocolError as e:
                # a router drops clients that send garbage
                log.warning(f"Dropping client: {e}")
                self._in.clear()
                self._out.clear()
                self.closed = True
                return
            del self._in[:offset]
            if not words:
                continue
            sentence = [w.decode("utf-8", errors="replace") for w in words]
            self.requests.append(sentence)
            log.debug(f"Request: {sentence}")
            self._handle(sentence[0], sentence[1:])

    def _handle(self, command: str, words: list[str]):
        attrs, tag = {}, None
        for w in words:
            if w.startswith(".tag="):
                tag = w[5:]
            elif w.startswith("="):
                eq2 = w.find("=", 1)
                if eq2 > 0:
                    attrs[w[1:eq2]] = w[eq2 + 1:]

        if command == "/login":
            self._login(attrs, tag)
        elif not self.logged_in:
            self.reply("trap", {"message": "not logged in"}, tag)
        elif command == "/quit":
            self.reply("fatal", {"message": "session terminated on request"}, tag)
        elif command in self.data:
            for row in self.data[command]:
                self.reply("re", row, tag)
            self.reply("done", None, tag)
        else:
            self.reply("trap", {"message": "no such command prefix", "category": "0"}, tag)

    def _login(self, attrs: dict, tag):
        if "response" in attrs:
            expected = "00" + md5_challenge_response(self.password, self.challenge)
            if attrs.get("name") == self.username and attrs["response"] == expected:
                self.logged_in = True
                self.reply("done", None, tag)
            else:
                self.reply("trap", {"message": "cannot log in"}, tag)
        elif "password" in attrs and self.plain_login:
            if attrs.get("name") == self.username and attrs["password"] == self.password:
                self.logged_in = True
                self.reply("done", None, tag)
            else:
                self.reply("trap", {"message": "invalid user name or password (6)"}, tag)
        else:
            self.reply("done", {"ret": self.challenge}, tag)
