"""
Run one RouterOS API query and log the reply.

Run with:
  python -m mikrolink /system/resource/print
  python -m mikrolink /interface/print ?type=ether =.proplist=name,running

Connection settings come from the environment / .env (see config.py).
With MIKROTIK_MOCK=1 the query goes to the built-in mock router instead.
Exit status: 0 on !done, 1 on !trap / !fatal, 2 if the router is unreachable
or the login fails.
"""

import logging
import sys

from .api_protocol import RouterOSError
from .config import load_settings
from .connection import Connection
from .mock_router import MockRouter


def _print_reply(conn, replies, context) -> int:
    log = context
    for r in replies:
        log.info(f"!{r.status}")
        for k, v in r.params:
            log.info(f"  {k} = {v}")
    return 1 if replies.has_error else 0


def _open(settings) -> Connection:
    if not settings.mock:
        return Connection.connect(
            settings.host,
            settings.port,
            settings.username,
            settings.password,
            timeout=settings.timeout,
            login_method=settings.login_method,
        )

    # demo mode: canned data, accepts the configured credentials
    conn = Connection(MockRouter(settings.username, settings.password))
    conn.peer = "mock"
    try:
        conn.login(settings.username, settings.password, settings.login_method)
    except RouterOSError:
        conn.close()
        raise
    return conn


def main(argv: list[str] | None = None) -> int:
    argv = sys.argv[1:] if argv is None else argv
    settings = load_settings()

    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    log = logging.getLogger("mikrolink")

    if not argv:
        log.error("Usage: python -m mikrolink <command> [=key=value ...] [?query ...]")
        return 2

    try:
        conn = _open(settings)
    except RouterOSError as e:
        where = "mock router" if settings.mock else f"{settings.host}:{settings.port}"
        log.error(f"Cannot log in to {where}: {e}")
        return 2

    with conn:
        try:
            return conn.query(argv[0], argv[1:], _print_reply, log)
        except RouterOSError as e:
            log.error(f"{argv[0]} failed: {e}")
            return 2


if __name__ == "__main__":
    sys.exit(main())
