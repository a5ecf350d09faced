"""Global test configuration.

Resets the `henix` logger between tests, since configure_logging() mutates
its level and handlers, and provides a throwaway flake directory.
"""

import logging
import pytest


@pytest.fixture(autouse=True)
def _reset_henix_logger():
    yield
    root = logging.getLogger("henix")
    root.handlers.clear()
    root.setLevel(logging.NOTSET)


@pytest.fixture
def cfg_dir(tmp_path):
    """A minimal configuration directory, including VCS metadata."""
    directory = tmp_path / "config"
    directory.mkdir()
    (directory / "flake.nix").write_text("{ outputs = { self }: { }; }\n")
    (directory / "hosts").mkdir()
    (directory / "hosts" / "web1.nix").write_text("{ networking.hostName = \"web1\"; }\n")
    (directory / ".git").mkdir()
    (directory / ".git" / "HEAD").write_text("ref: refs/heads/main\n")
    return directory
