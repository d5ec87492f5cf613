# residency/rules.py

"""Country rule table: validation, Default fallback and file loading."""

from __future__ import annotations

import logging
import plistlib
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Dict, Iterator, List
from xml.parsers.expat import ExpatError

import yaml
from pydantic import ValidationError

from .models import DEFAULT_RULE_KEY, CountryRule

logger = logging.getLogger(__name__)


class RuleConfigError(ValueError):
    """Rule table is unusable (missing Default, invalid entry, unreadable file)."""


class RuleTable(Mapping):
    """
    Read-only mapping of country code (or "Default") -> CountryRule.

    Construction fails when the "Default" entry is missing, so an engine can
    never be built around a table that has no fallback.
    """

    def __init__(self, rules: Mapping[str, CountryRule]):
        if DEFAULT_RULE_KEY not in rules:
            known = ", ".join(sorted(rules.keys())) or "(none)"
            raise RuleConfigError(f"Rule table has no {DEFAULT_RULE_KEY!r} entry. Keys: {known}")
        self._rules: Dict[str, CountryRule] = dict(rules)
        self.default: CountryRule = self._rules[DEFAULT_RULE_KEY]

    def __getitem__(self, code: str) -> CountryRule:
        return self._rules[code]

    def __iter__(self) -> Iterator[str]:
        return iter(self._rules)

    def __len__(self) -> int:
        return len(self._rules)

    def rule_for(self, code: str) -> CountryRule:
        return self._rules.get(code, self.default)

    def country_name(self, code: str) -> str:
        rule = self._rules.get(code)
        return rule.country_name if rule is not None else code

    def country_codes(self) -> List[str]:
        """Configured country codes, without the Default entry."""
        return sorted(k for k in self._rules if k != DEFAULT_RULE_KEY)


def parse_rule_table(raw: Mapping[str, Any]) -> RuleTable:
    """
    Validate a raw {code: {field: value}} mapping into a RuleTable.

    - Non-mapping entries are skipped (logged), like comments in a rules file.
    - Invalid entries raise RuleConfigError naming the offending key.
    - ISO keys are uppercased; "Default" is kept verbatim.
    """
    out: Dict[str, CountryRule] = {}
    for code, value in raw.items():
        if not isinstance(value, Mapping):
            logger.warning("Skipping rule entry %r: expected a mapping, got %s", code, type(value).__name__)
            continue
        try:
            rule = CountryRule.model_validate(dict(value))
        except ValidationError as e:
            raise RuleConfigError(f"Invalid rule for {code!r}: {e}") from e

        key = DEFAULT_RULE_KEY if code == DEFAULT_RULE_KEY else str(code).strip().upper()
        out[key] = rule

    return RuleTable(out)


def load_rules(path: Path) -> RuleTable:
    """
    Load a rule table from disk.

    .plist files are read as Apple property lists; anything else is parsed
    as YAML (which also covers JSON).
    """
    path = Path(path)
    if not path.is_file():
        raise RuleConfigError(f"Rules file not found: {path}")

    if path.suffix.lower() == ".plist":
        try:
            data = plistlib.loads(path.read_bytes())
        except (plistlib.InvalidFileException, ExpatError) as e:
            raise RuleConfigError(f"Invalid plist structure in {path}: {e}") from e
    else:
        try:
            data = yaml.safe_load(path.read_text(encoding="utf-8"))
        except yaml.YAMLError as e:
            raise RuleConfigError(f"Invalid rules file {path}: {e}") from e

    if not isinstance(data, Mapping):
        raise RuleConfigError(f"Rules file {path} must contain a mapping of country code -> rule")

    table = parse_rule_table(data)
    logger.debug("Loaded %d country rules from %s", len(table), path)
    return table
