"""
specupdater package

Updates RPM spec files for a new upstream version or a rebuild, and works out
where the matching source archives can be downloaded.

Key responsibilities are split across modules:
- `directives.py`, `release.py`, `changelog.py`: pieces of the spec rewrite
- `rewriter.py`: one-pass rewrite of a spec file, written back atomically
- `rules.py`, `planner.py`, `sources.py`: source URL resolution and fetch plans
- `header.py`, `process.py`, `fetcher.py`, `vcs.py`: external collaborators
- `updater.py`: orchestration (rewrite -> download -> build)
- `cli.py`: CLI entrypoint
"""

from __future__ import annotations

__all__ = ["__version__"]

__version__ = "0.3.0"
