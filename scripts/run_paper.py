#!/usr/bin/env python3
"""
Dry-run launcher script.

Runs the autopilot with the paper profile: the full discovery, screening and
monitoring loop against live market data, with swaps simulated and recorded
in the local database. An optional YAML file may be passed as first argument.
"""

import asyncio
import sys
from pathlib import Path

# Add the project root to the Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from autopilot.runner.pipeline import main


if __name__ == "__main__":
    args = ["--profile", "paper"]
    if len(sys.argv) > 1:
        args += ["--config", sys.argv[1]]

    try:
        asyncio.run(main(args))
    except KeyboardInterrupt:
        print("\nDry run stopped by user.")
        sys.exit(0)
