"""Tests for workspace state and credential storage."""

import threading

from agentplanner.store import DB_PATH_ENV, SecretStore, StateStore, workspace_scope


class TestStateStore:
    """Test scoped key-value behavior."""

    def test_set_and_get(self, store):
        """Basic store and retrieve."""
        store.set("/ws", "plan", {"task": "x", "steps": []})
        assert store.get("/ws", "plan") == {"task": "x", "steps": []}

    def test_missing_returns_none(self, store):
        """Unset keys read as None."""
        assert store.get("/ws", "nothing") is None

    def test_scopes_are_isolated(self, store):
        """The same key in two workspaces holds two values."""
        store.set("/ws-a", "plan", "a")
        store.set("/ws-b", "plan", "b")
        assert store.get("/ws-a", "plan") == "a"
        assert store.get("/ws-b", "plan") == "b"

    def test_last_write_wins(self, store):
        """Writing again replaces the value."""
        store.set("/ws", "plan", {"version": 1})
        store.set("/ws", "plan", {"version": 2})
        assert store.get("/ws", "plan") == {"version": 2}

    def test_delete(self, store):
        """Delete removes only the addressed key."""
        store.set("/ws", "plan", 1)
        store.set("/other", "plan", 2)
        store.delete("/ws", "plan")
        assert store.get("/ws", "plan") is None
        assert store.get("/other", "plan") == 2

    def test_persists_across_instances(self, state_db_path):
        """Values survive reopening the database."""
        StateStore(db_path=state_db_path).set("/ws", "plan", "kept")
        assert StateStore(db_path=state_db_path).get("/ws", "plan") == "kept"

    def test_db_path_from_environment(self, tmp_path, monkeypatch):
        """AGENTPLANNER_DB overrides the default location."""
        db = tmp_path / "nested" / "custom.db"
        monkeypatch.setenv(DB_PATH_ENV, str(db))

        store = StateStore()

        assert store.db_path == db
        assert db.exists()

    def test_thread_safety(self, store):
        """Store should handle concurrent access."""
        errors = []

        def worker(thread_id):
            try:
                for i in range(10):
                    store.set(f"/ws{thread_id}", f"key{i}", {"thread": thread_id, "item": i})
                    store.get(f"/ws{thread_id}", f"key{i}")
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=worker, args=(i,)) for i in range(5)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(errors) == 0


class TestSecretStore:
    """Test the credential source."""

    def test_absent_secret_is_none(self, secrets):
        """A missing credential is a normal condition."""
        assert secrets.get("agentplanner.llm.api_key") is None

    def test_set_get_delete(self, secrets):
        """Credentials can be stored, replaced and removed."""
        secrets.set("agentplanner.llm.api_key", "sk-1")
        secrets.set("agentplanner.llm.api_key", "sk-2")
        assert secrets.get("agentplanner.llm.api_key") == "sk-2"

        secrets.delete("agentplanner.llm.api_key")
        assert secrets.get("agentplanner.llm.api_key") is None

    def test_secrets_not_visible_as_state(self, store):
        """Secrets live outside workspace state."""
        SecretStore(store).set("token", "value")
        assert store.get("", "token") is None


class TestWorkspaceScope:
    """Test workspace scope keys."""

    def test_relative_and_absolute_match(self, tmp_workspace, monkeypatch):
        """A relative path and its absolute form share a scope."""
        monkeypatch.chdir(tmp_workspace.parent)
        assert workspace_scope("workspace") == workspace_scope(tmp_workspace)
