"""
Root conftest.py - fixtures shared across all tests.

Station fixtures are loaded via pytest_plugins from tests/fixtures/.
"""

from pathlib import Path
import sys

TESTS_DIR = Path(__file__).parent.resolve()
if str(TESTS_DIR) not in sys.path:
    sys.path.insert(0, str(TESTS_DIR))

pytest_plugins = [
    "fixtures.station_fixtures",
]
