"""
Unit tests for the persisted session id.
"""
import json

from capture_client.session_manager import SESSION_KEY, SessionManager


class TestSessionManager:
    def test_creates_and_persists_id(self, tmp_path):
        path = tmp_path / "nested" / "session.json"
        session_id = SessionManager(path).get_or_create_session_id()

        assert session_id
        assert json.loads(path.read_text())[SESSION_KEY] == session_id

    def test_returns_same_id_across_instances(self, tmp_path):
        path = tmp_path / "session.json"
        first = SessionManager(path).get_or_create_session_id()
        second = SessionManager(path).get_or_create_session_id()
        assert first == second

    def test_existing_id_is_reused(self, tmp_path):
        path = tmp_path / "session.json"
        path.write_text(json.dumps({SESSION_KEY: "kept"}))
        assert SessionManager(path).get_or_create_session_id() == "kept"

    def test_corrupt_file_is_replaced(self, tmp_path):
        path = tmp_path / "session.json"
        path.write_text("{not json")
        session_id = SessionManager(path).get_or_create_session_id()
        assert session_id != ""
        assert json.loads(path.read_text())[SESSION_KEY] == session_id

    def test_path_from_environment(self, tmp_path, monkeypatch):
        path = tmp_path / "env.json"
        monkeypatch.setenv("VISION_SESSION_FILE", str(path))
        assert SessionManager().path == path
