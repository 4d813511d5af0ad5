# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/starbridge-python/LICENSE
# ==============================================================================

"""Serve the cats echo controller.

Usage::

    uv run python examples/cats/main.py --port 3000

Then try ``curl -X POST 'localhost:3000/42?filter=cats' -d '{"name": "tom"}'``.
"""

from __future__ import annotations

import asyncio

from controller import CatsController

from starbridge import StarbridgeFactory
from starbridge.utils import setup_logger


async def main(port: int = 3000) -> None:
    setup_logger()
    app = StarbridgeFactory.create(CatsController)
    await app.listen(port)
    try:
        await asyncio.Event().wait()
    finally:
        await app.close()


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Run the cats example server")
    parser.add_argument("--port", type=int, default=3000, help="Port to listen on")
    args = parser.parse_args()

    asyncio.run(main(args.port))
