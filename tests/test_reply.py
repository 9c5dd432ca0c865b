import logging

import pytest

from mikrolink.api_protocol import TransportError
from mikrolink.reply import ReplyAssembler, ReplyChain, ReplyRecord, receive_reply


CHALLENGE = "00112233445566778899aabbccddeeff"


def feed(assembler, *words):
    done = False
    for w in words:
        done = assembler.feed_word(w.encode() if isinstance(w, str) else w)
    return done


def test_single_done():

    assembler = ReplyAssembler()
    assert feed(assembler, "!done", f"=ret={CHALLENGE}", "")

    chain = assembler.chain()
    assert len(chain) == 1
    assert chain[0].status == "done"
    assert chain[0].params == [("ret", CHALLENGE)]
    assert chain[0].get("ret") == CHALLENGE


def test_multi_sentence_reply():

    assembler = ReplyAssembler()
    assert not feed(assembler, "!re", "=name=ether1", "")
    assert not feed(assembler, "!re", "=name=ether2", "")
    assert feed(assembler, "!done", "")

    chain = assembler.chain()
    assert [r.status for r in chain] == ["re", "re", "done"]
    assert [r.get("name") for r in chain.with_status("re")] == ["ether1", "ether2"]


def test_terminal_status_completes_at_sentence_end():

    assembler = ReplyAssembler()
    assert not feed(assembler, "!done", "=ret=x")
    assert not assembler.complete
    assert feed(assembler, "")


def test_empty_sentence_does_not_end_reply():

    assembler = ReplyAssembler()
    assert not feed(assembler, "")
    assert not feed(assembler, "!re", "=a=1", "", "")
    assert feed(assembler, "!done", "")
    assert len(assembler.chain()) == 2


def test_malformed_word_is_skipped(caplog):

    assembler = ReplyAssembler()
    with caplog.at_level(logging.WARNING, logger="Reply"):
        feed(assembler, "!re", "=badword", "=name=ether1", "=comment=a=b", "", "!done", "")

    record = assembler.chain()[0]
    assert record.params == [("name", "ether1"), ("comment", "a=b")]
    assert "=badword" in caplog.text


def test_unknown_and_orphan_words_are_skipped():

    assembler = ReplyAssembler()
    feed(assembler, "=early=1", "garbage", "!trap", "?query", "=message=bad command", "")

    chain = assembler.chain()
    assert len(chain) == 1
    assert chain[0].status == "trap"
    assert chain[0].as_dict() == {"message": "bad command"}


def test_trap_is_terminal():

    assembler = ReplyAssembler()
    assert feed(assembler, "!trap", "=message=bad command", "")
    assert assembler.chain().has_error


def test_custom_terminal_tags():

    assembler = ReplyAssembler(terminal_tags={"done"})
    assert not feed(assembler, "!trap", "=message=x", "")
    assert feed(assembler, "!done", "")


def test_tag_word():

    assembler = ReplyAssembler()
    feed(assembler, "!done", "=ret=*5", ".tag=7", "")
    assert assembler.chain()[0].tag == "7"


def test_chain_not_complete():

    assembler = ReplyAssembler()
    feed(assembler, "!re", "")
    with pytest.raises(RuntimeError):
        assembler.chain()


def test_receive(make_socket):

    sock = make_socket()
    sock.feed(["!re", "=name=ether1"], ["!done"], ["!re", "=leftover=1"])

    chain = receive_reply(sock)
    assert [r.status for r in chain] == ["re", "done"]
    # the next reply stays on the stream
    assert sock.incoming


def test_receive_eof_before_terminal(make_socket):

    sock = make_socket()
    sock.feed(["!re", "=name=ether1"])

    with pytest.raises(TransportError):
        receive_reply(sock)


def test_record_accessors():

    record = ReplyRecord("re", [("a", "1"), ("b", "2"), ("a", "2")])

    assert record.get("a") == "1"
    assert record.get("missing") is None
    assert record.get("missing", "x") == "x"
    assert record.key_at(1) == "b"
    assert record.value_at(2) == "2"
    assert record.key_at(3) is None
    assert record.value_at(-1) is None
    assert record.as_dict() == {"a": "1", "b": "2"}
    assert not record.is_error


def test_chain_accessors():

    first = ReplyRecord("re", [("name", "ether1")])
    second = ReplyRecord("trap", [("message", "failure")])
    chain = ReplyChain([first, second])

    assert len(chain) == 2
    assert chain.first is first
    assert chain.last is second
    assert chain.next_record(first) is second
    assert chain.next_record(second) is None
    assert chain.error() is second
    assert chain.has_error

    with pytest.raises(ValueError):
        chain.next_record(ReplyRecord("re"))

    copy = chain.copy()
    chain.release()
    assert len(chain) == 0
    assert len(copy) == 2
    assert copy[0].get("name") == "ether1"


def test_dump(caplog):

    chain = ReplyChain([ReplyRecord("done", [("ret", "abc")], tag="3")])
    with caplog.at_level(logging.DEBUG, logger="Reply"):
        chain.dump()

    assert "!done" in caplog.text
    assert "ret = abc" in caplog.text
