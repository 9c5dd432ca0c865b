"""
RouterOS API binary protocol primitives.

Wire format:
  Sentence = Word* + ZeroWord
  Word     = Length + Data
  ZeroWord = 0x00
  Length   = variable (1–5 bytes)

Length prefix forms (always the shortest one that fits):
  0x00000000 – 0x0000007F   1 byte   0xxxxxxx
  0x00000080 – 0x00003FFF   2 bytes  10xxxxxx ...
  0x00004000 – 0x001FFFFF   3 bytes  110xxxxx ...
  0x00200000 – 0x0FFFFFFF   4 bytes  1110xxxx ...
  0x10000000 – 0xFFFFFFFF   5 bytes  0xF0 + 32-bit big endian

Response types:
  !re    = data reply
  !done  = command completed
  !trap  = error
  !fatal = fatal error (connection will close)
"""

import hashlib
import struct

API_PORT = "8728"

MAX_WORD_LENGTH = 0xFFFFFFFF


# ─── Errors ───────────────────────────────────────────────────────────────────

class RouterOSError(Exception):
    """Base class for everything raised by mikrolink."""


class TransportError(RouterOSError):
    """Stream connect/read/write failure, or the peer closed the stream."""
    def __init__(self, message: str, errno: int | None = None):
        super().__init__(message)
        self.errno = errno


class ProtocolError(RouterOSError):
    """The peer sent something the wire format does not allow."""


class AuthenticationError(ProtocolError):
    """Login challenge missing/malformed, or the router rejected the login."""


class CapacityError(RouterOSError):
    """A word or sentence does not fit the available size."""


class APIError(RouterOSError):
    """Raised when RouterOS returns !trap or !fatal."""
    def __init__(self, message: str, category: str = ""):
        super().__init__(message)
        self.category = category


# ─── Length Encoding ──────────────────────────────────────────────────────────

def encode_length(length: int) -> bytes:
    if length < 0:
        raise ValueError(f"Word length cannot be negative: {length}")
    if length < 0x80:
        return struct.pack("B", length)
    elif length < 0x4000:
        return struct.pack(">H", length | 0x8000)
    elif length < 0x200000:
        b = struct.pack(">I", length | 0xC00000)
        return b[1:]  # 3 bytes
    elif length < 0x10000000:
        return struct.pack(">I", length | 0xE0000000)
    elif length <= MAX_WORD_LENGTH:
        return b"\xF0" + struct.pack(">I", length)
    raise CapacityError(f"Word length {length:#x} does not fit a 32-bit prefix")


def prefix_size(first: int) -> int:
    """Total number of prefix bytes announced by the leading byte."""
    if first == 0xF0:
        return 5
    elif first & 0xF0 == 0xF0:
        raise ProtocolError(f"Invalid length prefix byte {first:#04x}")
    elif first & 0xE0 == 0xE0:
        return 4
    elif first & 0xC0 == 0xC0:
        return 3
    elif first & 0x80 == 0x80:
        return 2
    return 1


def decode_prefix(prefix: bytes) -> int:
    """Decode a complete length prefix (1–5 bytes, as sized by prefix_size)."""
    size = len(prefix)
    if size == 1:
        return prefix[0]
    elif size == 2:
        return struct.unpack(">H", prefix)[0] & 0x3FFF
    elif size == 3:
        # 3 bytes – pad to 4
        return struct.unpack(">I", b"\x00" + prefix)[0] & 0x1FFFFF
    elif size == 4:
        return struct.unpack(">I", prefix)[0] & 0x0FFFFFFF
    elif size == 5:
        return struct.unpack(">I", prefix[1:])[0]
    raise ProtocolError(f"Length prefix cannot be {size} bytes long")


def decode_length(data: bytes, offset: int = 0) -> tuple[int, int]:
    """Returns (length, new_offset)."""
    if offset >= len(data):
        raise ProtocolError("Length prefix missing")
    size = prefix_size(data[offset])
    if offset + size > len(data):
        raise ProtocolError(f"Truncated length prefix (need {size} bytes)")
    return decode_prefix(bytes(data[offset:offset + size])), offset + size


# ─── Word / Sentence Encoding ─────────────────────────────────────────────────

def to_word(word: str | bytes) -> bytes:
    if isinstance(word, str):
        return word.encode("utf-8")
    return bytes(word)


def encode_word(word: str | bytes) -> bytes:
    data = to_word(word)
    return encode_length(len(data)) + data


def build_sentence(words: list[str | bytes], limit: int | None = None) -> bytes:
    """
    Encode words plus the terminating zero word.
    Raises CapacityError if the result would be longer than `limit` bytes.
    """
    buf = bytearray()
    for w in words:
        encoded = encode_word(w)
        if limit is not None and len(buf) + len(encoded) + 1 > limit:
            raise CapacityError(
                f"Sentence exceeds {limit} bytes while adding a {len(encoded)}-byte word"
            )
        buf += encoded
    if limit is not None and len(buf) + 1 > limit:
        raise CapacityError(f"No room for the sentence terminator within {limit} bytes")
    buf += b"\x00"
    return bytes(buf)


# ─── Sentence Decoding ────────────────────────────────────────────────────────

def decode_sentence(data: bytes, offset: int = 0) -> tuple[list[bytes], int]:
    """
    Decode one sentence from a byte buffer.
    Returns (words, new_offset). Raises BufferError if the sentence is incomplete.
    """
    words = []
    while True:
        if offset >= len(data):
            raise BufferError("Incomplete sentence data")
        size = prefix_size(data[offset])
        if offset + size > len(data):
            raise BufferError("Incomplete length prefix")
        length = decode_prefix(bytes(data[offset:offset + size]))
        offset += size
        if length == 0:
            return words, offset  # end of sentence
        if offset + length > len(data):
            # incomplete – caller must buffer
            raise BufferError("Incomplete sentence data")
        words.append(bytes(data[offset:offset + length]))
        offset += length


# ─── MD5 Login Helper ─────────────────────────────────────────────────────────

def md5_challenge_response(password: str | bytes, challenge_hex: str) -> str:
    """
    RouterOS MD5 login:
      MD5( 0x00 + password_bytes + challenge_bytes )
    Returns lowercase hex string.
    """
    challenge_bytes = bytes.fromhex(challenge_hex)
    h = hashlib.md5()
    h.update(b"\x00")
    h.update(to_word(password))
    h.update(challenge_bytes)
    return h.hexdigest()
