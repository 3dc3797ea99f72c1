"""
Entry point for running the EduPortal CLI as a module.

Usage:
    python -m cli [--data-dir DIR] init
    python -m cli videos list [--user USER_ID]
    python -m cli videos reset
    python -m cli users list
    python -m cli progress show USER_ID
"""

import asyncio
from .commands import main


def run():
    asyncio.run(main())


if __name__ == "__main__":
    run()
