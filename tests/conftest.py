from __future__ import annotations

import sys
from collections import Counter
from pathlib import Path
from typing import List

import pytest

SRC_DIR = Path(__file__).resolve().parent.parent / "src"

# run against the checkout when lispy isn't installed
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))


def pytest_collection_modifyitems(config: pytest.Config, items: List[pytest.Item]) -> None:
    """Case tables are parametrized by name; two cases must never share an id."""
    del config

    counts = Counter(item.nodeid for item in items)
    clashes = sorted(nodeid for nodeid, seen in counts.items() if seen > 1)
    if clashes:
        listing = "\n".join(f"- {nodeid}" for nodeid in clashes)
        raise pytest.UsageError(f"Case ids collide:\n{listing}")
