"""インタビューセッション関連のデータモデル。"""

import uuid
from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from ideaflow.models.analysis import Analysis, Recommendations
from ideaflow.models.question import AnswerMap, AnswerValue, QuestionDefinition

SessionStatus = Literal["active", "paused", "completed", "abandoned"]
MessageRole = Literal["user", "assistant", "system"]


def _now() -> datetime:
    return datetime.now(UTC)


class Message(BaseModel):
    """会話トランスクリプトの1メッセージ。"""

    id: str = Field(default_factory=lambda: f"msg-{uuid.uuid4().hex}")
    role: MessageRole
    content: str
    timestamp: datetime = Field(default_factory=_now)
    metadata: dict[str, Any] | None = None


class ChatTurn(BaseModel):
    """AI呼び出しに渡す会話履歴の1エントリ。"""

    role: Literal["user", "assistant"]
    content: str


class Snapshot(BaseModel):
    """Undo/Redo用のセッション状態のディープコピー。スタックに積んだ後は不変。"""

    model_config = ConfigDict(frozen=True)

    taken_at: datetime = Field(default_factory=_now)
    answers: AnswerMap
    messages: tuple[Message, ...]
    pending_question_id: str | None = None


class ValidationResult(BaseModel):
    """回答バリデーションの結果。"""

    valid: bool
    error: str | None = None


class SessionState(BaseModel):
    """インタビューセッションの状態。永続化形式を兼ねる。"""

    session_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    messages: list[Message] = Field(default_factory=list)
    answers: AnswerMap = Field(default_factory=dict)
    status: SessionStatus = "active"
    started_at: datetime = Field(default_factory=_now)
    last_activity_at: datetime = Field(default_factory=_now)
    completed_at: datetime | None = None
    progress: int = Field(default=0, ge=0, le=100)
    pending_question_id: str | None = None
    # AIが生成したフロー外の追加質問
    extra_questions: dict[str, QuestionDefinition] = Field(default_factory=dict)
    follow_up_counts: dict[str, int] = Field(default_factory=dict)
    undo_stack: list[Snapshot] = Field(default_factory=list)
    redo_stack: list[Snapshot] = Field(default_factory=list)
    analysis: Analysis | None = None
    recommendations: Recommendations | None = None

    def add_message(self, role: MessageRole, content: str, metadata: dict[str, Any] | None = None) -> Message:
        message = Message(role=role, content=content, metadata=metadata)
        self.messages.append(message)
        self.last_activity_at = message.timestamp
        return message

    def record_answer(self, question_id: str, value: AnswerValue) -> None:
        self.answers[question_id] = value
        self.last_activity_at = _now()

    def history(self, window: int | None = None) -> list[ChatTurn]:
        """システムメッセージを除いた末尾の会話履歴を返す。"""
        turns = [ChatTurn(role=m.role, content=m.content) for m in self.messages if m.role != "system"]
        if window is not None:
            turns = turns[-window:] if window > 0 else []
        return turns
