import logging
import os
import socket
from typing import Optional

import uvicorn

from piped_proxy.vars import HOST, LOG_LEVEL, PORT, SERVER_KEEPALIVE_TIMEOUT, UDS_PATH

logger = logging.getLogger("uvicorn.error")


def bind_unix_socket(path: str) -> Optional[socket.socket]:
    """Bind a fresh Unix domain socket at ``path``, or return None if that fails."""
    try:
        os.unlink(path)
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning(f"Could not remove stale socket {path}: {e}")

    sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
    try:
        sock.bind(path)
    except OSError as e:
        sock.close()
        logger.warning(f"Failed to bind to UDS, falling back to TCP/IP: {e}")
        return None
    return sock


def main() -> None:
    config = uvicorn.Config(
        "piped_proxy.server:app",
        host=HOST,
        port=PORT,
        log_level=LOG_LEVEL,
        timeout_keep_alive=SERVER_KEEPALIVE_TIMEOUT,
    )
    server = uvicorn.Server(config)

    sock = bind_unix_socket(UDS_PATH)
    if sock is None:
        server.run()
        return

    logger.info(f"Listening on unix socket {UDS_PATH}")
    try:
        server.run(sockets=[sock])
    finally:
        sock.close()


if __name__ == "__main__":
    main()
