"""pytest fixtures for brainmap tests."""

import pytest
import tempfile
from pathlib import Path

from brainmap.core.models import MindMap
from brainmap.core.session import Session


@pytest.fixture
def temp_dir():
    """temporary directory that cleans up after test."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def sample_map():
    """map with root, two children and a multi-line grandchild.

        Project
        ├── Research [idea, full-1]
        └── Build [flag]
            └── Ship it / by friday
    """
    mindmap = MindMap.new("Project")
    research = mindmap.add_child(mindmap.root_id, "Research")
    mindmap.add_icon(research, "idea")
    mindmap.add_icon(research, "full-1")
    build = mindmap.add_child(mindmap.root_id, "Build")
    mindmap.add_icon(build, "flag")
    mindmap.add_child(build, "Ship it\nby friday")
    mindmap.select_node(mindmap.root_id)
    return mindmap


@pytest.fixture
def config_dir(temp_dir):
    """per-test config directory for recent files."""
    path = temp_dir / "config"
    path.mkdir()
    return path


@pytest.fixture
def session(config_dir):
    """session with an isolated config directory."""
    return Session(config_dir=config_dir)
