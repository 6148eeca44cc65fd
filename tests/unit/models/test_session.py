"""セッション関連モデルのユニットテスト。"""

from ideaflow.models.analysis import Analysis, Recommendations
from ideaflow.models.question import QuestionDefinition
from ideaflow.models.session import Message, SessionState, Snapshot


class TestMessage:
    def test_ids_are_unique(self) -> None:
        first = Message(role="user", content="a")
        second = Message(role="user", content="a")
        assert first.id != second.id
        assert first.id.startswith("msg-")


class TestSessionState:
    def test_new_session_defaults(self) -> None:
        state = SessionState()
        assert state.status == "active"
        assert state.progress == 0
        assert state.answers == {}
        assert state.messages == []
        assert state.completed_at is None

    def test_add_message_updates_last_activity(self) -> None:
        state = SessionState()
        message = state.add_message("assistant", "Hello", {"question_id": "q1"})
        assert state.messages == [message]
        assert state.last_activity_at == message.timestamp

    def test_history_skips_system_messages_and_applies_window(self) -> None:
        state = SessionState()
        state.add_message("system", "internal")
        for i in range(4):
            state.add_message("assistant", f"question {i}")
            state.add_message("user", f"answer {i}")

        turns = state.history(3)
        assert [t.content for t in turns] == ["answer 2", "question 3", "answer 3"]
        assert len(state.history()) == 8
        assert state.history(0) == []

    def test_json_round_trip(self) -> None:
        state = SessionState()
        state.add_message("assistant", "What is your idea?", {"question_id": "idea_description"})
        state.record_answer("idea_description", "An assistant for ticket routing")
        state.record_answer("regulatory_review", False)
        state.record_answer("channels", ["email", "chat"])
        state.undo_stack.append(Snapshot(answers={}, messages=(), pending_question_id="idea_description"))
        state.extra_questions["budget_owner"] = QuestionDefinition(
            id="budget_owner", step=4, step_name="Feasibility", prompt="Who owns the budget?"
        )
        state.analysis = Analysis.default()
        state.recommendations = Recommendations()

        restored = SessionState.model_validate_json(state.model_dump_json())
        assert restored == state
        assert restored.answers["regulatory_review"] is False
        assert restored.answers["channels"] == ["email", "chat"]
