"""Rule inventory of DMN sources, used for coverage reporting."""

from __future__ import annotations

import xml.etree.ElementTree as ET
from pathlib import Path

from .engine import (
    child_text,
    children,
    decision_elements,
    decision_table_element,
    read_definitions,
)
from .errors import DecisionNotFoundError, RuleNotFoundError, SourceNotFoundError
from .models import RuleDescriptor


class RuleCatalog:
    """Enumerates decisions and rules of a DMN source.

    Sources are re-read on every call; nothing is cached.
    """

    def list_decision_keys(self, path: str | Path) -> list[str]:
        return self.list_decision_keys_from_string(self._read(path))

    def list_rules(self, path: str | Path, decision_key: str) -> list[RuleDescriptor]:
        return self.list_rules_from_string(self._read(path), decision_key, origin=str(path))

    def list_decision_keys_from_string(self, source: bytes | str) -> list[str]:
        root = read_definitions(source)
        return [element.get("id") or "" for element in decision_elements(root)]

    def list_rules_from_string(
        self, source: bytes | str, decision_key: str, origin: str = "<string>"
    ) -> list[RuleDescriptor]:
        """List the rules of a decision in table order.

        Raises:
            DecisionNotFoundError: If the decision key is not defined.
            RuleNotFoundError: If the decision has no table, or no rules.
        """
        decision = self._find_decision(read_definitions(source), decision_key)
        if decision is None:
            raise DecisionNotFoundError(decision_key, origin)
        table = decision_table_element(decision)
        if table is None:
            raise RuleNotFoundError("<any>", decision_key, origin)
        rules = children(table, "rule")
        if not rules:
            raise RuleNotFoundError("<none>", decision_key, origin)
        return [
            RuleDescriptor(
                rule_id=rule.get("id", ""),
                input_entries=tuple(child_text(e) for e in children(rule, "inputEntry")),
                output_entries=tuple(child_text(e) for e in children(rule, "outputEntry")),
            )
            for rule in rules
        ]

    @staticmethod
    def _read(path: str | Path) -> bytes:
        try:
            return Path(path).read_bytes()
        except OSError as e:
            raise SourceNotFoundError(str(path)) from e

    @staticmethod
    def _find_decision(root: ET.Element, decision_key: str) -> ET.Element | None:
        for element in decision_elements(root):
            if element.get("id") == decision_key:
                return element
        return None
