"""Pytest configuration for test isolation.

Settings loaders read ``REFUND_RECON_*`` and ``NEO_*`` variables (and the CLI
loads a ``.env`` from the working directory). A developer's shell or ``.env``
would otherwise leak into assertions about defaults, so every test runs with
those variables removed and with the working directory set to its own
temporary directory.
"""

from __future__ import annotations

import os
from pathlib import Path

import pytest

_ENV_PREFIXES = ("REFUND_RECON_", "NEO_")


@pytest.fixture(autouse=True)
def _isolate_environment(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    for name in list(os.environ):
        if name.startswith(_ENV_PREFIXES):
            monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
