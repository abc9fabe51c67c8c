"""Tests for the persisted session store."""

import stat

from edubridge.session import SessionStore


class TestSessionStore:
    """Tests for SessionStore."""

    def test_save_and_load(self, tmp_path, auth_session):
        store = SessionStore(path=tmp_path / "nested" / "session.json", enabled=True)

        store.save(auth_session)

        assert store.load() == auth_session
        mode = stat.S_IMODE((tmp_path / "nested" / "session.json").stat().st_mode)
        assert mode == 0o600

    def test_missing_file(self, tmp_path):
        assert SessionStore(path=tmp_path / "none.json", enabled=True).load() is None

    def test_corrupt_file_is_ignored(self, tmp_path):
        path = tmp_path / "session.json"
        path.write_text("{not json", encoding="utf-8")

        assert SessionStore(path=path, enabled=True).load() is None

    def test_incomplete_session_is_ignored(self, tmp_path):
        path = tmp_path / "session.json"
        path.write_text('{"access_token": "t"}', encoding="utf-8")

        assert SessionStore(path=path, enabled=True).load() is None

    def test_clear(self, tmp_path, auth_session):
        store = SessionStore(path=tmp_path / "session.json", enabled=True)
        store.save(auth_session)

        store.clear()
        store.clear()

        assert not (tmp_path / "session.json").exists()

    def test_disabled_store_touches_nothing(self, tmp_path, auth_session):
        path = tmp_path / "session.json"
        store = SessionStore(path=path, enabled=False)

        store.save(auth_session)
        assert not path.exists()

        path.write_text(auth_session.model_dump_json(), encoding="utf-8")
        assert store.load() is None

    def test_testing_environment_disables_persistence(self, tmp_path):
        assert SessionStore(path=tmp_path / "s.json").enabled is False

    def test_existing_file_is_tightened_to_owner_only(self, tmp_path, auth_session):
        path = tmp_path / "session.json"
        path.write_text("{}", encoding="utf-8")
        path.chmod(0o644)

        SessionStore(path=path, enabled=True).save(auth_session)

        assert stat.S_IMODE(path.stat().st_mode) == 0o600
        assert SessionStore(path=path, enabled=True).load() == auth_session
