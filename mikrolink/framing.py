"""
Blocking sentence I/O over a connected socket.

Writer:
  - validates every word before anything is encoded or sent
  - loops over short writes, retries on EAGAIN / EINTR

Reader:
  - read_exact() loops until the requested byte count is satisfied
  - read_word() reads the length prefix byte by byte as announced by the
    leading byte, then the word content
  - a zero-length word is the sentence terminator, never an error

Works with anything exposing socket-style recv()/send().
"""

import logging

from .api_protocol import (
    CapacityError,
    TransportError,
    build_sentence,
    decode_prefix,
    prefix_size,
)

log = logging.getLogger("Framing")

_TRANSIENT = (BlockingIOError, InterruptedError)


def _printable(word) -> str:
    if isinstance(word, str):
        return word
    return bytes(word).decode("utf-8", errors="replace")


# ─── Writing ──────────────────────────────────────────────────────────────────

def validate_words(command, args) -> list:
    words = [command, *args]
    for i, w in enumerate(words):
        if not isinstance(w, (str, bytes, bytearray)):
            raise ValueError(f"Word {i} must be str or bytes, got {type(w).__name__}")
        if not w:
            what = "Command" if i == 0 else f"Argument {i}"
            raise ValueError(f"{what} must not be empty")
    return words


def send_all(sock, data: bytes) -> None:
    view = memoryview(data)
    while view:
        try:
            sent = sock.send(view)
        except _TRANSIENT:
            continue
        except OSError as e:
            raise TransportError(f"Write failed: {e}", e.errno) from e
        if sent == 0:
            raise TransportError("Connection closed by remote end")
        view = view[sent:]


class SentenceWriter:
    """Serialises one request sentence and writes it completely."""

    def __init__(self, sock, limit: int | None = None, logger: logging.Logger | None = None):
        self.sock = sock
        self.limit = limit
        self.log = logger or log

    def write(self, command, args=()) -> int:
        """Send command + args + terminator. Returns the number of bytes written."""
        words = validate_words(command, args)
        data = build_sentence(words, self.limit)
        for w in words:
            self.log.debug(f"<<< {_printable(w)}")
        send_all(self.sock, data)
        return len(data)


def write_sentence(sock, command, args=(), limit: int | None = None) -> int:
    return SentenceWriter(sock, limit).write(command, args)


# ─── Reading ──────────────────────────────────────────────────────────────────

def read_exact(sock, size: int) -> bytes:
    if size == 0:
        return b""
    buf = bytearray()
    while len(buf) < size:
        try:
            chunk = sock.recv(size - len(buf))
        except _TRANSIENT:
            continue
        except OSError as e:
            raise TransportError(f"Read failed: {e}", e.errno) from e
        if not chunk:
            raise TransportError(
                f"Connection closed by remote end ({len(buf)} of {size} bytes read)"
            )
        buf += chunk
    return bytes(buf)


def read_word(sock, max_word: int | None = None, logger: logging.Logger | None = None) -> bytes:
    """Read one length-prefixed word. Returns b"" for the sentence terminator."""
    first = read_exact(sock, 1)
    size = prefix_size(first[0])
    prefix = first + read_exact(sock, size - 1)
    length = decode_prefix(prefix)
    if length == 0:
        return b""
    if max_word is not None and length > max_word:
        raise CapacityError(f"Incoming word of {length} bytes exceeds limit of {max_word}")
    word = read_exact(sock, length)
    (logger or log).debug(f">>> {_printable(word)}")
    return word


def read_sentence(sock, max_word: int | None = None, logger: logging.Logger | None = None) -> list[bytes]:
    words = []
    while True:
        w = read_word(sock, max_word, logger)
        if not w:
            return words
        words.append(w)
