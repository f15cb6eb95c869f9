import subprocess
import sys
from pathlib import Path

import pytest

REPO_ROOT = Path(__file__).resolve().parents[2]


@pytest.mark.parametrize(
    "module",
    [
        "travelsync.api.main",
        "travelsync.core.erp_sync",
        "travelsync.core.erp_sync.orchestrator",
        "travelsync.core.preflight",
        "travelsync.core.proposals",
        "travelsync.core.proposals.models",
    ],
)
def test_module_imports_in_fresh_interpreter(module):
    completed = subprocess.run(
        [sys.executable, "-c", f"import {module}"],
        cwd=REPO_ROOT,
        capture_output=True,
        text=True,
        timeout=60,
        check=False,
    )

    assert completed.returncode == 0, completed.stderr
