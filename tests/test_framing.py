import errno

import pytest

from mikrolink.api_protocol import (
    CapacityError,
    ProtocolError,
    TransportError,
    build_sentence,
)
from mikrolink.framing import (
    SentenceWriter,
    read_exact,
    read_sentence,
    read_word,
    write_sentence,
)


def test_write_sentence(fake_socket):

    written = write_sentence(fake_socket, "/login", ["=name=admin"])
    assert bytes(fake_socket.sent) == b"\x06/login\x0b=name=admin\x00"
    assert written == len(fake_socket.sent)


def test_write_short_writes(make_socket):

    sock = make_socket(send_chunk=3)
    write_sentence(sock, "/interface/print", ["=.proplist=name", "?type=ether"])

    assert bytes(sock.sent) == build_sentence(["/interface/print", "=.proplist=name", "?type=ether"])
    assert sock.send_calls > 3


def test_write_retries_transient(fake_socket):

    fake_socket.send_errors = [BlockingIOError(), InterruptedError()]
    write_sentence(fake_socket, "/login")
    assert bytes(fake_socket.sent) == b"\x06/login\x00"


def test_write_error(fake_socket):

    fake_socket.send_errors = [BrokenPipeError(errno.EPIPE, "Broken pipe")]

    with pytest.raises(TransportError) as info:
        write_sentence(fake_socket, "/login")

    assert info.value.errno == errno.EPIPE


def test_write_peer_closed(make_socket):

    sock = make_socket(send_chunk=0)
    with pytest.raises(TransportError):
        write_sentence(sock, "/login")


@pytest.mark.parametrize("command,args", (
    ("", []),
    ("/login", ["=name=admin", ""]),
    ("/login", [None]),
    (None, []),
))
def test_write_validation_is_atomic(fake_socket, command, args):

    with pytest.raises(ValueError):
        write_sentence(fake_socket, command, args)

    assert fake_socket.send_calls == 0
    assert fake_socket.sent == b""


def test_write_limit_is_atomic(fake_socket):

    writer = SentenceWriter(fake_socket, limit=4096)
    with pytest.raises(CapacityError):
        writer.write("/file/set", ["=contents=" + "x" * 5000])

    assert fake_socket.send_calls == 0


def test_read_exact_short_reads(make_socket):

    sock = make_socket(b"abcdefgh", recv_chunk=3)
    assert read_exact(sock, 7) == b"abcdefg"
    assert read_exact(sock, 0) == b""
    assert read_exact(sock, 1) == b"h"


def test_read_exact_retries_transient(make_socket):

    sock = make_socket(b"abc")
    sock.recv_errors = [BlockingIOError(), InterruptedError()]
    assert read_exact(sock, 3) == b"abc"


def test_read_exact_eof(make_socket):

    sock = make_socket(b"ab")
    with pytest.raises(TransportError):
        read_exact(sock, 3)


def test_read_exact_error(make_socket):

    sock = make_socket(b"ab")
    sock.recv_errors = [ConnectionResetError(errno.ECONNRESET, "Connection reset")]

    with pytest.raises(TransportError) as info:
        read_exact(sock, 2)

    assert info.value.errno == errno.ECONNRESET


@pytest.mark.parametrize("length", (0x7F, 0x80, 0x3FFF, 0x4000))
def test_read_word_lengths(make_socket, length):

    payload = b"x" * length
    sock = make_socket(build_sentence([payload]), recv_chunk=1000)

    assert read_word(sock) == payload
    assert read_word(sock) == b""
    assert sock.incoming == b""


def test_read_word_terminator(make_socket):

    sock = make_socket(b"\x00")
    assert read_word(sock) == b""


def test_read_word_invalid_prefix(make_socket):

    sock = make_socket(b"\xf5\x00\x00\x00\x01x")
    with pytest.raises(ProtocolError):
        read_word(sock)


def test_read_word_limit(make_socket):

    sock = make_socket(build_sentence(["x" * 300]))
    with pytest.raises(CapacityError):
        read_word(sock, max_word=256)


def test_read_sentence(make_socket):

    sock = make_socket()
    sock.feed(["!re", "=name=ether1"], [], ["!done"])

    assert read_sentence(sock) == [b"!re", b"=name=ether1"]
    assert read_sentence(sock) == []
    assert read_sentence(sock) == [b"!done"]
