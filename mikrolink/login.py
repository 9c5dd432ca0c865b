"""
RouterOS API login.

challenge (default, all RouterOS versions):
  >>> /login
  <<< !done =ret=<32 hex chars>
  >>> /login =name=<user> =response=00<md5(0x00 + password + challenge)>
  <<< !done

plain (RouterOS 6.43+):
  >>> /login =name=<user> =password=<password>
  <<< !done
  Older routers answer with a =ret= challenge instead, which is then
  answered exactly as in the challenge method.

States: INIT → RESPONDING → READY, any failure → FAILED.
"""

import logging
import string
from enum import Enum

from .api_protocol import AuthenticationError, md5_challenge_response

log = logging.getLogger("Login")

CHALLENGE_LENGTH = 32
LOGIN_METHODS = ("challenge", "plain")


class LoginState(Enum):
    INIT = "init"
    RESPONDING = "responding"
    READY = "ready"
    FAILED = "failed"


def _reject_message(record) -> str:
    return record.get("message", f"!{record.status}")


def validate_challenge(challenge: str | None) -> str:
    if challenge is None:
        raise AuthenticationError('Login reply does not have parameter "ret"')
    if len(challenge) != CHALLENGE_LENGTH:
        raise AuthenticationError(
            f'Unexpected length of the "ret" parameter: {len(challenge)} (expected {CHALLENGE_LENGTH})'
        )
    if any(c not in string.hexdigits for c in challenge):
        raise AuthenticationError(f'"ret" parameter is not hexadecimal: {challenge}')
    return challenge


def response_words(username: str, password: str, challenge: str) -> list[str]:
    digest = md5_challenge_response(password, challenge)
    return [f"=name={username}", f"=response=00{digest}"]


class LoginHandshake:

    def __init__(self, username: str, password: str, method: str = "challenge",
                 logger: logging.Logger | None = None):
        if method not in LOGIN_METHODS:
            raise ValueError(f"Unknown login method {method!r}, expected one of {LOGIN_METHODS}")
        self.username = username
        self.password = password
        self.method = method
        self.log = logger or log
        self.state = LoginState.INIT

    def run(self, conn):
        """Authenticate `conn`. Raises AuthenticationError (or transport errors) on failure."""
        self.state = LoginState.INIT
        try:
            if self.method == "plain":
                conn.query("/login", [f"=name={self.username}", f"=password={self.password}"],
                           self._on_plain_reply)
            else:
                conn.query("/login", [], self._on_challenge)
        except Exception as e:
            self.state = LoginState.FAILED
            self.log.warning(f"Login as {self.username!r} failed: {e}")
            raise
        return self.state

    # ─── Handlers ─────────────────────────────────────────────────────────────

    def _on_challenge(self, conn, replies, context):
        record = replies.first
        if record is None:
            raise AuthenticationError("Empty reply to /login")
        if record.is_error:
            raise AuthenticationError(f"Login rejected: {_reject_message(record)}")
        challenge = validate_challenge(record.get("ret"))
        self.log.debug(f"Challenge: {challenge}")
        return self._respond(conn, challenge)

    def _on_plain_reply(self, conn, replies, context):
        err = replies.error()
        if err is not None:
            raise AuthenticationError(f"Authentication failed: {_reject_message(err)}")
        record = replies.first
        challenge = record.get("ret") if record is not None else None
        if challenge is not None:
            # Pre-6.43 router: answer the challenge instead
            self.log.debug("Router asked for challenge-response login")
            return self._respond(conn, validate_challenge(challenge))
        self.state = LoginState.READY
        return self.state

    def _respond(self, conn, challenge: str):
        self.state = LoginState.RESPONDING
        return conn.query("/login", response_words(self.username, self.password, challenge),
                          self._on_ack)

    def _on_ack(self, conn, replies, context):
        err = replies.error()
        if err is not None:
            raise AuthenticationError(f"Authentication failed: {_reject_message(err)}")
        self.state = LoginState.READY
        return self.state
