"""Entry point for running the platform runtime via python -m runtime"""

import asyncio

from runtime.app import main

if __name__ == "__main__":
    asyncio.run(main())
