"""
process.py

Responsibility: the single place where external programs (rpmbuild, rpmspec,
svn, tar, bzme, ...) are executed.

Commands are always argument lists; nothing is ever passed through a shell.
Tests replace `ProcessRunner` with a fake recording the calls.
"""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path
from typing import Sequence

from specupdater.errors import ProcessFailure

logger = logging.getLogger(__name__)


class ProcessRunner:
    def run(
        self,
        cmd: Sequence[str],
        *,
        cwd: str | Path | None = None,
        env: dict[str, str] | None = None,
    ) -> str:
        """
        Run `cmd`, returning its combined stdout/stderr.

        Raises ProcessFailure when the command cannot be started or exits non-zero.
        """
        args = [str(a) for a in cmd]
        logger.debug("running: %s", " ".join(args))
        try:
            proc = subprocess.run(
                args,
                cwd=str(cwd) if cwd is not None else None,
                env=env,
                check=True,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
            )
        except subprocess.CalledProcessError as e:
            raise ProcessFailure(args, e.stdout or "", e.returncode) from e
        except OSError as e:
            raise ProcessFailure(args, str(e)) from e
        return proc.stdout or ""
