from __future__ import annotations

import pytest

from git_helpers import init_repo


@pytest.fixture
def git_repo(tmp_path):
    return init_repo(tmp_path / "repo")
