"""
Reply records and the assembler that builds them from incoming words.

A reply to one request is one or more sentences:
  !re    =key=value ...     (zero or more data sentences)
  !done  =ret=...           (terminal)
  !trap  =message=...       (terminal)
  !fatal                    (terminal, router closes the connection)

Word categories:
  !tag       starts a new record
  =key=value parameter of the current record (split at the second '=')
  .tag=N     request tag echoed by the router
  anything else is logged and ignored
"""

import logging
from dataclasses import dataclass, field
from typing import Iterator, Optional

from .framing import read_word

log = logging.getLogger("Reply")

TERMINAL_TAGS = frozenset({"done", "trap", "fatal"})
ERROR_TAGS = frozenset({"trap", "fatal"})


@dataclass
class ReplyRecord:
    status: str
    params: list[tuple[str, str]] = field(default_factory=list)
    tag: Optional[str] = None

    def add(self, key: str, value: str):
        self.params.append((key, value))

    def key_at(self, index: int) -> str | None:
        if 0 <= index < len(self.params):
            return self.params[index][0]
        return None

    def value_at(self, index: int) -> str | None:
        if 0 <= index < len(self.params):
            return self.params[index][1]
        return None

    def get(self, key: str, default: str | None = None) -> str | None:
        """Value of the first parameter named `key`."""
        for k, v in self.params:
            if k == key:
                return v
        return default

    def as_dict(self) -> dict:
        d = {}
        for k, v in self.params:
            d.setdefault(k, v)
        return d

    @property
    def is_error(self) -> bool:
        return self.status in ERROR_TAGS


class ReplyChain:
    """Ordered records produced by one receive."""

    def __init__(self, records: list[ReplyRecord] | None = None):
        self._records = list(records or [])

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[ReplyRecord]:
        return iter(self._records)

    def __getitem__(self, index: int) -> ReplyRecord:
        return self._records[index]

    def __repr__(self) -> str:
        return f"ReplyChain({self._records!r})"

    @property
    def first(self) -> ReplyRecord | None:
        return self._records[0] if self._records else None

    @property
    def last(self) -> ReplyRecord | None:
        return self._records[-1] if self._records else None

    def next_record(self, record: ReplyRecord) -> ReplyRecord | None:
        for i, r in enumerate(self._records):
            if r is record:
                return self._records[i + 1] if i + 1 < len(self._records) else None
        raise ValueError("Record does not belong to this chain")

    def with_status(self, status: str) -> list[ReplyRecord]:
        return [r for r in self._records if r.status == status]

    @property
    def has_error(self) -> bool:
        return any(r.is_error for r in self._records)

    def error(self) -> ReplyRecord | None:
        return next((r for r in self._records if r.is_error), None)

    def copy(self) -> "ReplyChain":
        return ReplyChain(
            [ReplyRecord(r.status, list(r.params), r.tag) for r in self._records]
        )

    def release(self):
        self._records.clear()

    def dump(self, logger: logging.Logger | None = None):
        out = logger or log
        for i, r in enumerate(self._records):
            out.debug(f"=== reply {i + 1}/{len(self._records)}: !{r.status}"
                      + (f" (.tag={r.tag})" if r.tag is not None else ""))
            for n, (k, v) in enumerate(r.params):
                out.debug(f" {n:3d}: {k} = {v}")


class ReplyAssembler:
    """
    Groups incoming words into ReplyRecords.

    The reply is complete when a sentence carrying a terminal status
    (done / trap / fatal by default) has been fully read. Running out of
    stream before that is an error raised by the reader; no partial chain
    is ever handed out.
    """

    def __init__(self, terminal_tags=TERMINAL_TAGS, logger: logging.Logger | None = None):
        self.terminal_tags = frozenset(terminal_tags)
        self.log = logger or log
        self._records: list[ReplyRecord] = []
        self._current: ReplyRecord | None = None
        self._terminal_in_sentence = False
        self.complete = False

    def feed_word(self, word: bytes) -> bool:
        """Consume one word. Returns True once the reply is complete."""
        if self.complete:
            raise RuntimeError("Reply already complete")

        if not word:
            # end of sentence
            if self._terminal_in_sentence:
                self.complete = True
            return self.complete

        text = word.decode("utf-8", errors="replace")

        if text.startswith("!"):
            self._current = ReplyRecord(status=text[1:])
            self._records.append(self._current)
            if self._current.status in self.terminal_tags:
                self._terminal_in_sentence = True

        elif text.startswith("="):
            eq2 = text.find("=", 1)
            if eq2 < 0:
                self.log.warning(f"Ignoring malformed word: {text}")
            elif self._current is None:
                self.log.warning(f"Ignoring parameter outside of a reply: {text}")
            else:
                self._current.add(text[1:eq2], text[eq2 + 1:])

        elif text.startswith(".tag="):
            if self._current is None:
                self.log.warning(f"Ignoring tag outside of a reply: {text}")
            else:
                self._current.tag = text[5:]

        else:
            self.log.debug(f"Ignoring unknown word: {text}")

        return False

    def chain(self) -> ReplyChain:
        if not self.complete:
            raise RuntimeError("Reply is not complete yet")
        return ReplyChain(self._records)

    def receive(self, sock, max_word: int | None = None) -> ReplyChain:
        """Read words from `sock` until the reply is complete."""
        while not self.feed_word(read_word(sock, max_word, self.log)):
            pass
        return self.chain()


def receive_reply(sock, terminal_tags=TERMINAL_TAGS, max_word: int | None = None,
                  logger: logging.Logger | None = None) -> ReplyChain:
    return ReplyAssembler(terminal_tags, logger).receive(sock, max_word)
