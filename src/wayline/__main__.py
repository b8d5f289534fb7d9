from __future__ import annotations

import argparse
import logging
import time

from .runtime.server import run


def main() -> None:
    p = argparse.ArgumentParser(prog="wayline", description="wayline: geospatial entity motion and replay server")
    p.add_argument("--host", default="127.0.0.1")
    p.add_argument("--port", type=int, default=8000)
    p.add_argument("--log-level", default="info", choices=["critical", "error", "warning", "info", "debug"])
    p.add_argument("--tick-hz", type=float, default=None, help="clock tick rate; 0 disables the ticker")
    args = p.parse_args()

    logging.basicConfig(
        level=getattr(logging, args.log_level.upper()),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    srv = run(host=args.host, port=args.port, log_level=args.log_level, tick_hz=args.tick_hz)
    print(getattr(srv, "url", None) or srv.base_url)

    # Block forever (so it behaves like a normal CLI server)
    while True:
        time.sleep(3600)


if __name__ == "__main__":
    main()
