import logging

import pytest


@pytest.fixture(autouse=True)
def _isolated_cwd(tmp_path, monkeypatch):
    """Every test runs in its own working directory so data.json stays local."""
    monkeypatch.chdir(tmp_path)
    yield
    logging.getLogger().handlers.clear()
