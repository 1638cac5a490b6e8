from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple
from urllib.parse import parse_qsl

_MATCH_REF = re.compile(r"\$matches\[(\d+)\]")


@dataclass
class RewriteRule:
    regex: str
    query: str
    pattern: re.Pattern

    def resolve(self, match: re.Match) -> Dict[str, str]:
        def _sub(m: re.Match) -> str:
            idx = int(m.group(1))
            try:
                return match.group(idx) or ''
            except IndexError:
                return ''
        query = self.query.split('?', 1)[1] if '?' in self.query else self.query
        return dict(parse_qsl(_MATCH_REF.sub(_sub, query), keep_blank_values=True))


class RewriteRules:
    """Ordered path patterns mapped to query variables.

    ``top`` rules are consulted before every ``bottom`` rule; within each
    group rules keep their registration order. Adding a rule whose regex is
    already known replaces it.
    """

    def __init__(self) -> None:
        self._top: List[RewriteRule] = []
        self._bottom: List[RewriteRule] = []

    def add_rule(self, regex: str, query: str, after: str = 'bottom') -> RewriteRule:
        if after not in ('top', 'bottom'):
            raise ValueError(f"unknown rewrite position: {after}")
        rule = RewriteRule(regex=regex, query=query, pattern=re.compile(regex))
        self._top = [r for r in self._top if r.regex != regex]
        self._bottom = [r for r in self._bottom if r.regex != regex]
        (self._top if after == 'top' else self._bottom).append(rule)
        return rule

    def rules(self) -> List[RewriteRule]:
        return [*self._top, *self._bottom]

    def match(self, path: str) -> Tuple[Optional[RewriteRule], Dict[str, str]]:
        path = path.lstrip('/')
        for rule in self.rules():
            m = rule.pattern.match(path)
            if m:
                return rule, rule.resolve(m)
        return None, {}

    def __len__(self) -> int:
        return len(self._top) + len(self._bottom)
