# test_imports.py
import importlib

import pytest


@pytest.mark.parametrize("module", [
    "claude_quota.core.formatters",
    "claude_quota.core.accumulator",
    "claude_quota.core.quota",
    "claude_quota.storage.credentials",
    "claude_quota.sdk",
    "claude_quota.config.loader",
    "claude_quota.plugin",
    "claude_quota.cli.main",
])
def test_module_imports(module):
    assert importlib.import_module(module) is not None
