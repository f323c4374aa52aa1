"""
rules.py

Responsibility: turn a package homepage into a base URL where its source
archives can be downloaded, using an ordered table of host rewrite rules.

Rules are tried in order and the first one whose pattern matches (anywhere in
the URL) wins. Templates reference captures positionally (`\\1`, `\\2`, ...).
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable


@dataclass(frozen=True)
class RewriteRule:
    pattern: str
    template: str

    def apply(self, url: str) -> str | None:
        """Return the rewritten URL, or None if the pattern does not match."""
        new_url, count = re.subn(self.pattern, self.template, url, count=1)
        return new_url if count else None


DEFAULT_REWRITE_RULES: tuple[RewriteRule, ...] = (
    RewriteRule(r"https?://(.*)\.(?:sourceforge|sf)\.net/?(.*)", r"http://prdownloads.sourceforge.net/\1/\2"),
    RewriteRule(r"https?://gna\.org/projects/([^/]*)/(.*)", r"http://download.gna.org/\1/\2"),
    RewriteRule(r"https?://(.*)\.berlios\.de/(.*)", r"http://download.berlios.de/\1/\2"),
    RewriteRule(r"https?://savannah\.nongnu\.org/projects/([^/]*)/(.*)", r"http://savannah.nongnu.org/download/\1/\2"),
    RewriteRule(r"https?://savannah\.gnu\.org/projects/([^/]*)/(.*)", r"http://savannah.gnu.org/download/\1/\2"),
    RewriteRule(r"https?://search\.cpan\.org/dist/([^-]+)-.*", r"http://www.cpan.org/modules/by-module/\1/"),
)


def rewrite_homepage(url: str, rules: Iterable[RewriteRule] = DEFAULT_REWRITE_RULES) -> str:
    for rule in rules:
        new_url = rule.apply(url)
        if new_url is not None:
            return new_url
    return url
