#!/usr/bin/env python3
"""Import the 2025-26 GSDTA workbook.

Usage:
    python scripts/import_2025_26_data.py [--dry-run] [--test] [--students] [--teachers]
        [--textbooks] [--classes] [--volunteers] [--all]

Same options as ``gsdta import``.
"""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from gsdta.cli.main import import_data  # noqa: E402

if __name__ == "__main__":
    import_data(prog_name="import_2025_26_data")
