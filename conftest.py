"""Root-level conftest.py: make the checkout importable in tests.

Puts the repo root on sys.path so ``panewatch`` and ``tests.helpers``
resolve to this working tree even without an editable install.
"""

import sys
from pathlib import Path

_repo_root = str(Path(__file__).parent)
if _repo_root not in sys.path:
    sys.path.insert(0, _repo_root)
