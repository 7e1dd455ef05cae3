"""Exceptions raised by the wizard core."""

from typing import Optional


class WizardError(Exception):
    """Base class for all wizard errors."""


class ConfigError(WizardError):
    """A catalog configuration file is invalid."""


class NodeNotFound(WizardError):
    def __init__(self, node_id: str):
        self.node_id = node_id
        super().__init__(f"Node '{node_id}' not found")


class PathNotFound(WizardError):
    """No edge leaves ``node_id`` through ``option_id``."""

    def __init__(self, node_id: str, option_id: str, available: Optional[list[str]] = None):
        self.node_id = node_id
        self.option_id = option_id
        self.available = available or []
        msg = f"No path from node '{node_id}' with option '{option_id}'"
        if self.available:
            msg += f". Available options: {', '.join(self.available)}"
        super().__init__(msg)


class GraphIntegrityError(WizardError):
    """The dataset failed structural validation.

    ``problems`` lists every violation found, not only the first one.
    """

    def __init__(self, problems: list[str]):
        self.problems = list(problems)
        shown = self.problems[:10]
        more = f" (and {len(self.problems) - 10} more)" if len(self.problems) > 10 else ""
        super().__init__(
            f"Graph integrity check failed with {len(self.problems)} problem(s){more}:\n"
            + "\n".join(shown)
        )


class UnknownFeatureError(WizardError):
    def __init__(self, feature_ids: list[str]):
        self.feature_ids = list(feature_ids)
        super().__init__(f"Unknown feature id(s): {', '.join(self.feature_ids)}")


class FeatureConflictError(WizardError):
    """Adding a feature would create an error-type compatibility issue."""

    def __init__(self, feature_id: str, issues: list):
        self.feature_id = feature_id
        self.issues = list(issues)
        others = sorted({i.other_than(feature_id) for i in self.issues})
        super().__init__(f"Feature '{feature_id}' conflicts with: {', '.join(others)}")


class MirrorConflictError(WizardError):
    """The mirror version changed between the start of a sync and its commit."""

    def __init__(self, expected: Optional[str], actual: Optional[str]):
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Mirror version changed during sync (expected {expected!r}, found {actual!r})"
        )
