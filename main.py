#!/usr/bin/env python3
"""
ShopReel v1.0.0 — Main entry point.
Equivalent to the installed ``shopreel`` console script.
"""

import sys
import logging
import traceback

from shopreel.cli import main as run_cli

logger = logging.getLogger("shopreel")


def main() -> int:
    try:
        return run_cli()
    except KeyboardInterrupt:
        return 130
    except Exception as e:
        error_msg = f"{type(e).__name__}: {e}"
        logger.critical("Fatal error: %s\n%s", error_msg, traceback.format_exc())
        print(f"fatal: {error_msg}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
