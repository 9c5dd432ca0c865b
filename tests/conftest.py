import pytest

from mikrolink.api_protocol import build_sentence
from mikrolink.mock_router import MockRouter


class FakeSocket:
    """Scripted socket: recv() serves `incoming`, send() records into `sent`."""

    def __init__(self, incoming=b"", recv_chunk=None, send_chunk=None):
        self.incoming = bytearray(incoming)
        self.sent = bytearray()
        self.recv_chunk = recv_chunk
        self.send_chunk = send_chunk
        self.send_errors = []
        self.recv_errors = []
        self.send_calls = 0
        self.closed = False

    def feed(self, *sentences):
        for words in sentences:
            self.incoming += build_sentence(words)

    def send(self, data):
        self.send_calls += 1
        if self.send_errors:
            raise self.send_errors.pop(0)
        n = len(data) if self.send_chunk is None else min(len(data), self.send_chunk)
        self.sent += bytes(data[:n])
        return n

    def recv(self, size):
        if self.recv_errors:
            raise self.recv_errors.pop(0)
        if self.recv_chunk is not None:
            size = min(size, self.recv_chunk)
        chunk = bytes(self.incoming[:size])
        del self.incoming[:size]
        return chunk

    def close(self):
        self.closed = True


@pytest.fixture
def fake_socket():
    return FakeSocket()


@pytest.fixture
def make_socket():
    return FakeSocket


@pytest.fixture
def router():
    return MockRouter(
        username="admin",
        password="test",
        challenge="00112233445566778899aabbccddeeff",
    )
