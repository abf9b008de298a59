"""
Shared pytest configuration.

Makes ``src/`` and the CLI module importable when the package is not
installed and registers the custom markers used by the suite.
"""

import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent

for path in (ROOT / "src", ROOT):
    if str(path) not in sys.path:
        sys.path.insert(0, str(path))


def pytest_configure(config):
    config.addinivalue_line("markers", "integration: end-to-end tests against a local target app")
