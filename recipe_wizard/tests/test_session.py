"""WizardSession state transitions and serialization."""

from recipe_wizard.logic.session import HistoryEntry, WizardSession


class TestTrail:
    def test_push_and_pop(self):
        session = WizardSession(current_node_id="root")
        session.push(HistoryEntry("root", "opt-a", "A"), "node-a")
        assert session.current_node_id == "node-a"
        assert session.depth == 1

        entry = session.pop()
        assert entry.option_id == "opt-a"
        assert session.current_node_id == "root"

    def test_pop_empty(self):
        session = WizardSession(current_node_id="root")
        assert session.pop() is None
        assert session.current_node_id == "root"

    def test_restart_clears_selection(self):
        session = WizardSession(current_node_id="x", pending_features=["a"], selected_features=["b"])
        session.restart("root")
        assert (session.current_node_id, session.pending_features, session.selected_features) == (
            "root", [], []
        )

    def test_log_defaults_to_current_node(self):
        session = WizardSession(current_node_id="root")
        session.log("reset")
        assert session.events[0].node_id == "root"


class TestSerialization:
    def test_round_trip(self):
        session = WizardSession(current_node_id="node-a", pending_features=["token-limits"])
        session.push(HistoryEntry("node-a", "opt-b", "B"), "node-b")
        session.log("select", "node-a", "opt-b")

        restored = WizardSession.from_dict(session.to_dict())
        assert restored == session

    def test_missing_session_id_gets_fresh_one(self):
        restored = WizardSession.from_dict({"currentNodeId": "root"})
        assert restored.session_id
        assert restored.history == []

    def test_sessions_have_distinct_ids(self):
        assert WizardSession().session_id != WizardSession().session_id
