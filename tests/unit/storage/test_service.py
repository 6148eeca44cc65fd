"""StorageServiceのユニットテスト。"""

import pytest

from ideaflow.models.errors import SessionNotFoundError, StorageError
from ideaflow.models.session import SessionState, Snapshot
from ideaflow.storage.service import StorageService


class TestStorageService:
    async def test_save_and_load_session(self, storage: StorageService) -> None:
        state = SessionState(session_id="test-session-1")
        await storage.save_session(state)

        loaded = await storage.load_session("test-session-1")
        assert loaded.session_id == "test-session-1"
        assert loaded.status == "active"

    async def test_load_nonexistent_session_raises_error(self, storage: StorageService) -> None:
        with pytest.raises(SessionNotFoundError) as exc_info:
            await storage.load_session("nonexistent")
        assert exc_info.value.session_id == "nonexistent"

    async def test_round_trip_preserves_answers_messages_and_stacks(self, storage: StorageService) -> None:
        state = SessionState(session_id="test-session-2", pending_question_id="idea_name")
        state.add_message("assistant", "Describe your idea", {"question_id": "idea_description"})
        state.record_answer("idea_description", "Route support tickets with an LLM")
        state.record_answer("regulatory_review", True)
        state.undo_stack.append(Snapshot(answers={}, messages=(), pending_question_id="idea_description"))
        await storage.save_session(state)

        loaded = await storage.load_session("test-session-2")
        assert loaded == state
        assert loaded.messages[0].timestamp == state.messages[0].timestamp

    async def test_save_session_overwrites_existing(self, storage: StorageService) -> None:
        state = SessionState(session_id="test-session-3")
        await storage.save_session(state)

        state.status = "completed"
        await storage.save_session(state)

        loaded = await storage.load_session("test-session-3")
        assert loaded.status == "completed"

    async def test_corrupt_file_raises_storage_error(self, storage: StorageService) -> None:
        await storage.save_session(SessionState(session_id="broken"))
        (storage._sessions_dir / "broken" / "session.json").write_text("{not json", encoding="utf-8")

        with pytest.raises(StorageError):
            await storage.load_session("broken")

    async def test_list_sessions_empty(self, storage: StorageService) -> None:
        assert await storage.list_sessions() == []

    async def test_list_sessions(self, storage: StorageService) -> None:
        for session_id in ("session-b", "session-a"):
            await storage.save_session(SessionState(session_id=session_id))
        assert await storage.list_sessions() == ["session-a", "session-b"]

    async def test_path_traversal_prevention(self, storage: StorageService) -> None:
        with pytest.raises(StorageError, match="Invalid session ID"):
            await storage.save_session(SessionState(session_id="../../etc"))

    @pytest.mark.parametrize("session_id", ["..", ".", ""])
    async def test_parent_and_current_directory_ids_are_rejected(
        self, storage: StorageService, session_id: str
    ) -> None:
        await storage.save_session(SessionState(session_id="real"))
        (storage._sessions_dir / "session.json").write_text("{}", encoding="utf-8")

        with pytest.raises(StorageError, match="Invalid session ID"):
            await storage.load_session(session_id)
