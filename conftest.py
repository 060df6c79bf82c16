"""
Project-wide PyTest bootstrap.

Puts every ``packages/*/src`` directory on ``sys.path`` so tests can import
the project's packages without an editable install.
"""

from pathlib import Path
import sys

ROOT = Path(__file__).parent.resolve()
_paths = [str(p) for p in sorted((ROOT / "packages").glob("*/src"))]
# Preserve order but ensure local paths take precedence
for _p in reversed(_paths):
    if _p not in sys.path:
        sys.path.insert(0, _p)
