"""Compatibility rule engine.

Evaluates pairwise rules over a set of selected component/feature ids:
errors (hard conflicts), warnings (soft conflicts), info (recommendations).
Rules are stored per unordered pair, so ``check_pair(a, b)`` and
``check_pair(b, a)`` always agree. A missing rule means "compatible".
"""

import logging
from dataclasses import dataclass, field
from typing import Iterable, Optional

from ..models import CompatibilityRule, RuleType
from .feature_catalog import resolve_feature

logger = logging.getLogger(__name__)


def _canonical_id(component_id: str) -> str:
    feature = resolve_feature(component_id)
    return feature.id if feature is not None else component_id


@dataclass
class CompatibilityIssue:
    """A rule that fired for a pair inside a selection."""
    type: RuleType
    component_id1: str
    component_id2: str
    reason: str = ""

    def touches(self, component_id: str) -> bool:
        return component_id in (self.component_id1, self.component_id2)

    def other_than(self, component_id: str) -> str:
        return self.component_id2 if self.component_id1 == component_id else self.component_id1

    def to_dict(self) -> dict:
        return {
            "type": self.type.value,
            "componentId1": self.component_id1,
            "componentId2": self.component_id2,
            "reason": self.reason,
        }


@dataclass
class CanAddResult:
    can_add: bool
    errors: list[CompatibilityIssue] = field(default_factory=list)
    warnings: list[CompatibilityIssue] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "canAdd": self.can_add,
            "errors": [e.to_dict() for e in self.errors],
            "warnings": [w.to_dict() for w in self.warnings],
        }


class CompatibilityEngine:
    """Pairwise rule lookup over a fixed rule set."""

    def __init__(self, rules: Iterable[CompatibilityRule], store=None):
        self.store = store
        self._rules: dict[frozenset, CompatibilityRule] = {}
        for rule in rules:
            pair = rule.pair
            if pair in self._rules:
                logger.warning(
                    f"Duplicate compatibility rule for {sorted(pair)} ignored "
                    f"(keeping '{self._rules[pair].type.value}')"
                )
                continue
            self._rules[pair] = rule

    @classmethod
    def from_store(cls, store) -> "CompatibilityEngine":
        return cls(store.get_all_compatibility_rules(), store=store)

    def __len__(self) -> int:
        return len(self._rules)

    # =========================================================================
    # LOOKUPS
    # =========================================================================

    def check_pair(self, component_id1: str, component_id2: str) -> Optional[CompatibilityRule]:
        """Rule for the unordered pair, or None if the two are compatible.

        Granular feature ids (``semantic-caching-vector``) fall back to the
        rules of their canonical feature when no rule names them directly.
        """
        rule = self._rules.get(frozenset((component_id1, component_id2)))
        if rule is None:
            pair = frozenset((_canonical_id(component_id1), _canonical_id(component_id2)))
            if len(pair) == 2:
                rule = self._rules.get(pair)
        return rule

    def check_all(self, component_ids: Iterable[str]) -> list[CompatibilityIssue]:
        """Evaluate every unordered pair in ``component_ids``.

        Duplicate ids are ignored; issue order follows input order.
        """
        ids = list(dict.fromkeys(component_ids))
        issues = []
        for i in range(len(ids)):
            for j in range(i + 1, len(ids)):
                rule = self.check_pair(ids[i], ids[j])
                if rule:
                    issues.append(CompatibilityIssue(
                        type=rule.type,
                        component_id1=ids[i],
                        component_id2=ids[j],
                        reason=rule.reason,
                    ))
        return issues

    def get_errors(self, component_ids: Iterable[str]) -> list[CompatibilityIssue]:
        return [i for i in self.check_all(component_ids) if i.type == RuleType.ERROR]

    def get_warnings(self, component_ids: Iterable[str]) -> list[CompatibilityIssue]:
        return [i for i in self.check_all(component_ids) if i.type == RuleType.WARNING]

    def get_info(self, component_ids: Iterable[str]) -> list[CompatibilityIssue]:
        return [i for i in self.check_all(component_ids) if i.type == RuleType.INFO]

    # =========================================================================
    # GATE
    # =========================================================================

    def can_add(self, new_id: str, existing_ids: Iterable[str]) -> CanAddResult:
        """Decide whether ``new_id`` may join ``existing_ids``.

        Admissible iff no error-type issue involves ``new_id``. Conflicts
        already present among ``existing_ids`` do not block the new id.
        Warnings involving ``new_id`` are returned for display.
        """
        test_set = [i for i in existing_ids if i != new_id] + [new_id]
        issues = [i for i in self.check_all(test_set) if i.touches(new_id)]
        errors = [i for i in issues if i.type == RuleType.ERROR]
        warnings = [i for i in issues if i.type == RuleType.WARNING]
        return CanAddResult(can_add=not errors, errors=errors, warnings=warnings)

    def get_component_names(self, issue: CompatibilityIssue) -> tuple[str, str]:
        """Display names for both sides of an issue, falling back to ids."""
        def _name(cid):
            comp = self.store.get_component(cid) if self.store is not None else None
            return comp.name if comp else cid
        return _name(issue.component_id1), _name(issue.component_id2)
