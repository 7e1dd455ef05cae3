"""Wizard session state.

A session is the explicit context a ``NavigationEngine`` works on:

1. Current position in the graph
2. The trail of (node, option) choices since the last reset
3. Pending and committed feature selections
4. An append-only event log of everything that happened

Nothing here is global; several sessions can share one ``GraphStore``.
Sessions serialize to plain dicts so they can live in a URL, a cookie or
a key-value store between requests.
"""

import time
import uuid
from dataclasses import dataclass, field
from typing import Optional


@dataclass
class HistoryEntry:
    """One choice on the trail: at ``node_id`` the user picked ``option_id``."""
    node_id: str
    option_id: str
    option_label: str = ""

    def to_dict(self) -> dict:
        return {"nodeId": self.node_id, "optionId": self.option_id, "optionLabel": self.option_label}

    @classmethod
    def from_dict(cls, data: dict) -> "HistoryEntry":
        return cls(
            node_id=data["nodeId"],
            option_id=data["optionId"],
            option_label=data.get("optionLabel", ""),
        )


@dataclass
class SessionEvent:
    """Immutable log record. ``action`` is select, back, reset, jump, submit, feature."""
    action: str
    node_id: Optional[str]
    option_id: Optional[str] = None
    detail: str = ""
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> dict:
        return {
            "action": self.action,
            "nodeId": self.node_id,
            "optionId": self.option_id,
            "detail": self.detail,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "SessionEvent":
        return cls(
            action=data["action"],
            node_id=data.get("nodeId"),
            option_id=data.get("optionId"),
            detail=data.get("detail", ""),
            timestamp=data.get("timestamp", 0.0),
        )


@dataclass
class WizardSession:
    """Navigation state for one user walking the decision graph."""
    session_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    current_node_id: Optional[str] = None
    history: list[HistoryEntry] = field(default_factory=list)

    # Feature selection: pending while on a feature-selection node,
    # committed on submit and consumed by the recipe composer.
    pending_features: list[str] = field(default_factory=list)
    selected_features: list[str] = field(default_factory=list)

    events: list[SessionEvent] = field(default_factory=list)

    def log(self, action: str, node_id: Optional[str] = None,
            option_id: Optional[str] = None, detail: str = "") -> None:
        self.events.append(SessionEvent(
            action=action,
            node_id=node_id if node_id is not None else self.current_node_id,
            option_id=option_id,
            detail=detail,
        ))

    def push(self, entry: HistoryEntry, next_node_id: str) -> None:
        self.history.append(entry)
        self.current_node_id = next_node_id

    def pop(self) -> Optional[HistoryEntry]:
        if not self.history:
            return None
        entry = self.history.pop()
        self.current_node_id = entry.node_id
        return entry

    def restart(self, root_node_id: str) -> None:
        """Clear trail and feature selections and stand on the root."""
        self.history = []
        self.pending_features = []
        self.selected_features = []
        self.current_node_id = root_node_id

    @property
    def depth(self) -> int:
        return len(self.history)

    # =========================================================================
    # SERIALIZATION
    # =========================================================================

    def to_dict(self) -> dict:
        return {
            "sessionId": self.session_id,
            "currentNodeId": self.current_node_id,
            "history": [h.to_dict() for h in self.history],
            "pendingFeatures": list(self.pending_features),
            "selectedFeatures": list(self.selected_features),
            "events": [e.to_dict() for e in self.events],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "WizardSession":
        return cls(
            session_id=data.get("sessionId") or uuid.uuid4().hex,
            current_node_id=data.get("currentNodeId"),
            history=[HistoryEntry.from_dict(h) for h in data.get("history", [])],
            pending_features=list(data.get("pendingFeatures", [])),
            selected_features=list(data.get("selectedFeatures", [])),
            events=[SessionEvent.from_dict(e) for e in data.get("events", [])],
        )
