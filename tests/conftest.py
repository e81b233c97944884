"""
Test configuration shared by every tokenlock test package.
"""
import os
import sys
from pathlib import Path

# Add project root and src to Python path so tests run without an install
project_root = Path(__file__).parent.parent
src_path = project_root / "src"

sys.path.insert(0, str(project_root))
sys.path.insert(0, str(src_path))

import pytest
from hypothesis import HealthCheck, settings

settings.register_profile("default", max_examples=100, deadline=None)
settings.register_profile(
    "ci",
    max_examples=300,
    deadline=None,
    suppress_health_check=[HealthCheck.too_slow],
)
settings.register_profile("quick", max_examples=20, deadline=None)
settings.load_profile(os.getenv("TOKENLOCK_HYPOTHESIS_PROFILE", "default"))


@pytest.fixture(autouse=True)
def _isolate_tokenlock_env(monkeypatch):
    """Keep developer TOKENLOCK_* settings from leaking into tests."""
    for name in list(os.environ):
        if name.startswith("TOKENLOCK_") and name != "TOKENLOCK_HYPOTHESIS_PROFILE":
            monkeypatch.delenv(name, raising=False)
