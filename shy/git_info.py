from __future__ import annotations

import logging
import subprocess
from collections.abc import Sequence

logger = logging.getLogger(__name__)


def run_command(cmd: Sequence[str], cwd: str | None = None) -> str | None:
    """Run a probe command, returning its stripped stdout or None when it fails."""

    try:
        out = subprocess.check_output(cmd, cwd=cwd, stderr=subprocess.DEVNULL, text=True)
    except subprocess.CalledProcessError:
        return None
    except (FileNotFoundError, NotADirectoryError) as exc:
        logger.warning("git probe failed in %s", cwd, exc_info=exc)
        return None
    return out.strip() or None


def detect_git_context(cwd: str) -> tuple[str | None, str | None]:
    """Return ``(repo, branch)`` for ``cwd``; both None outside a repository.

    The repo is the ``origin`` remote URL when one is configured, else the
    top-level directory of the work tree.
    """

    if run_command(["git", "rev-parse", "--git-dir"], cwd=cwd) is None:
        return None, None
    repo = run_command(["git", "config", "--get", "remote.origin.url"], cwd=cwd)
    if repo is None:
        repo = run_command(["git", "rev-parse", "--show-toplevel"], cwd=cwd)
    branch = run_command(["git", "rev-parse", "--abbrev-ref", "HEAD"], cwd=cwd)
    return repo, branch
