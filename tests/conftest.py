import os as _os
import sys

import pytest

# Ensure project root is importable (so `import main` / `import cli` work reliably across environments)
_project_root = _os.path.dirname(_os.path.dirname(__file__))
if _project_root not in sys.path:
    sys.path.insert(0, _project_root)


@pytest.fixture
def clean_env(monkeypatch):
    """Drop every exporter setting from the environment."""
    for key in list(_os.environ):
        if key.startswith("VERSIONS_EXPORTER_") or key == "GITHUB_TOKEN":
            monkeypatch.delenv(key, raising=False)
    return monkeypatch
