"""Shared fixtures for the flightcheck test suite."""

from pathlib import Path

import pytest

from fc_common.models import Job

FIXTURES_DIR = Path(__file__).parent / "fixtures"


@pytest.fixture
def job_payload():
    """A cycle:start payload for a project without a release."""
    return {
        "repo": "git@host:org/app.git",
        "tag": "master",
        "project": {"_id": "p1", "name": "App"},
        "release": None,
        "cycle": {"_id": "c1"},
    }


@pytest.fixture
def job(job_payload):
    return Job.from_dict(job_payload)


@pytest.fixture
def fixture_hooks():
    """The hook tree under tests/fixtures/hooks."""
    return FIXTURES_DIR / "hooks"


@pytest.fixture
def hook_tree(tmp_path):
    """
    Build a hook tree in a temporary directory.

    Call with a mapping of relative path -> module source.
    """

    def build(files: dict[str, str]) -> Path:
        root = tmp_path / "hooks"
        root.mkdir(exist_ok=True)
        for relative, source in files.items():
            path = root / relative
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(source)
        return root

    return build
