#!/usr/bin/env python
"""
Launcher script for the Bakery Trace command line.

This script ensures the correct Python path is set before running the CLI
from a source checkout.
"""

import sys
from pathlib import Path

# Add the src directory to the Python path
src_dir = Path(__file__).parent / "src"
sys.path.insert(0, str(src_dir))

# Now import and run the command line
from bakery_trace.utils.trace_cli import main

if __name__ == "__main__":
    sys.exit(main())
