"""
errors.py

Responsibility: the error kinds shared by the rewriter, the source resolver and
the collaborators.

Every error is fatal to the current package update and propagates to the caller
unchanged; the CLI is the only place that turns them into an exit status.
"""

from __future__ import annotations


class UpdaterError(RuntimeError):
    pass


class ConfigError(UpdaterError):
    pass


class UnparsableRelease(UpdaterError):
    def __init__(self, value: str) -> None:
        self.value = value
        super().__init__(f"Unable to extract release number from value '{value}'")


class UnresolvableSourceURL(UpdaterError):
    pass


class DownloadFailure(UpdaterError):
    def __init__(self, url: str, attempted: list[str] | None = None) -> None:
        self.url = url
        self.attempted = list(attempted or [])
        msg = f"Unable to download source: {url}"
        if self.attempted:
            msg += f" (tried {len(self.attempted)} candidates)"
        super().__init__(msg)


class SpecIOFailure(UpdaterError):
    pass


class SpecParseFailure(UpdaterError):
    pass


class ProcessFailure(UpdaterError):
    def __init__(self, args: list[str], output: str = "", returncode: int | None = None) -> None:
        self.args_list = list(args)
        self.output = output
        self.returncode = returncode
        msg = f"Command failed: {' '.join(args)}"
        if output:
            msg += f"\n\n{output}"
        super().__init__(msg)


class BuildFailure(UpdaterError):
    pass
