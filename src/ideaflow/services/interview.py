"""インタビューのターン進行を司るサービス。"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime, timedelta
from typing import Any, TypeVar

from pydantic import BaseModel

from ideaflow.llm.protocols import ConversationAnalyzer, RecommendationGenerator
from ideaflow.models.analysis import Analysis, Recommendations
from ideaflow.models.errors import (
    InterviewNotCompletedError,
    SessionCompletedError,
    SessionNotActiveError,
)
from ideaflow.models.output import OutputRecord
from ideaflow.models.question import AnswerValue, QuestionDefinition, QuestionFlow
from ideaflow.models.session import SessionState, SessionStatus
from ideaflow.services.progress import ProgressReport, overall_progress, progress_report
from ideaflow.services.projection import project
from ideaflow.services.selector import NextQuestionSelector, SelectionMode
from ideaflow.services.sessions import SessionStore, apply_user_turn, resolve_question
from ideaflow.services.validator import VaguenessPolicy, display_answer, validate

logger = logging.getLogger(__name__)

T = TypeVar("T")

COMPLETION_MESSAGE = (
    "Thank you! Your GenAI idea has been captured. "
    "The analysis and recommendations are ready, and the record can now be exported."
)


class TurnResult(BaseModel):
    """1ターンの処理結果。"""

    session_id: str
    accepted: bool
    error: str | None = None
    follow_up: str | None = None
    question: QuestionDefinition | None = None
    progress: int
    status: SessionStatus
    mode: SelectionMode | None = None


class NavigationResult(BaseModel):
    """Undo/Redoの結果。"""

    session_id: str
    applied: bool
    question: QuestionDefinition | None = None
    progress: int
    can_undo: bool
    can_redo: bool


class InterviewService:
    """質問の提示・回答の受け付け・完了処理を行う。

    1ターンは SessionStore のトランザクション内で処理するため、同一セッションの
    ターンは直列化され、途中でキャンセルされたターンは状態に何も残さない。
    """

    def __init__(
        self,
        flow: QuestionFlow,
        store: SessionStore,
        selector: NextQuestionSelector,
        analyzer: ConversationAnalyzer | None = None,
        recommender: RecommendationGenerator | None = None,
        *,
        vagueness_policy: VaguenessPolicy | None = None,
        ai_timeout: float = 30.0,
        history_window: int = 10,
    ) -> None:
        self._flow = flow
        self._store = store
        self._selector = selector
        self._analyzer = analyzer
        self._recommender = recommender
        self._vagueness = vagueness_policy or VaguenessPolicy()
        self._ai_timeout = ai_timeout
        self._history_window = history_window

    @property
    def flow(self) -> QuestionFlow:
        return self._flow

    async def start_interview(self) -> TurnResult:
        """新しいセッションを作成し、最初の質問を提示する。"""
        created = await self._store.create_session()
        async with self._store.transaction(created.session_id) as state:
            mode = await self._advance(state)
            return self._turn_result(state, accepted=True, mode=mode)

    async def submit_answer(self, session_id: str, raw_answer: AnswerValue) -> TurnResult:
        """現在の質問への回答を受け付け、次の質問を提示する。

        バリデーションに失敗した場合は状態を変更せず、エラー文言を返す。

        Raises:
            SessionNotFoundError: セッションが存在しない場合。
            SessionCompletedError: インタビューが完了している場合。
            SessionNotActiveError: セッションが一時停止・放棄されている場合。
        """
        async with self._store.transaction(session_id) as state:
            self._ensure_active(state)

            if state.pending_question_id is None:
                mode = await self._advance(state)
                return self._turn_result(
                    state, accepted=False, error="No question was pending. Please answer this one.", mode=mode
                )

            question = resolve_question(self._flow, state, state.pending_question_id)
            result = validate(question, raw_answer)
            if not result.valid:
                return self._turn_result(state, accepted=False, error=result.error)

            asked = state.follow_up_counts.get(question.id, 0)
            follow_up = self._vagueness.follow_up_for(question, raw_answer, asked)
            if follow_up is not None:
                state.follow_up_counts[question.id] = asked + 1
                state.add_message("user", display_answer(raw_answer), {"question_id": question.id})
                state.add_message("assistant", follow_up, {"question_id": question.id, "follow_up": True})
                return self._turn_result(state, accepted=False, follow_up=follow_up)

            apply_user_turn(state, question, raw_answer, self._store.history)
            mode = await self._advance(state)
            return self._turn_result(state, accepted=True, mode=mode)

    async def undo(self, session_id: str) -> NavigationResult:
        """直前の回答を取り消す。

        Raises:
            SessionCompletedError: インタビューが完了している場合。
        """
        async with self._store.transaction(session_id) as state:
            if state.status == "completed":
                raise SessionCompletedError(session_id)
            applied = self._store.history.undo(state)
            return self._navigation_result(state, applied)

    async def redo(self, session_id: str) -> NavigationResult:
        """取り消した回答をやり直す。

        Raises:
            SessionCompletedError: インタビューが完了している場合。
        """
        async with self._store.transaction(session_id) as state:
            if state.status == "completed":
                raise SessionCompletedError(session_id)
            applied = self._store.history.redo(state)
            return self._navigation_result(state, applied)

    async def pause(self, session_id: str) -> SessionState:
        return await self._store.pause(session_id)

    async def resume(self, session_id: str) -> SessionState:
        return await self._store.resume(session_id)

    async def abandon_inactive(self, minutes: float, now: datetime | None = None) -> list[str]:
        return await self._store.abandon_inactive(timedelta(minutes=minutes), now)

    def statistics(self) -> dict[str, Any]:
        return self._store.statistics()

    async def dispose(self) -> None:
        """停止時に呼ぶ。未保存のセッションを書き出す。"""
        await self._store.dispose()

    async def get_current_question(self, session_id: str) -> QuestionDefinition | None:
        """提示中の質問を返す。完了済み・未提示なら None。"""
        state = await self._store.get_session(session_id)
        return self._pending_question(state)

    async def get_progress(self, session_id: str) -> ProgressReport:
        state = await self._store.get_session(session_id)
        return progress_report(self._flow, state.answers)

    async def get_session(self, session_id: str) -> SessionState:
        return await self._store.get_session(session_id)

    async def export_record(self, session_id: str) -> OutputRecord:
        """完了したセッションから出力レコードを生成する。

        Raises:
            SessionNotFoundError: セッションが存在しない場合。
            InterviewNotCompletedError: インタビューが未完了の場合。
        """
        state = await self._store.get_session(session_id)
        if state.status != "completed":
            raise InterviewNotCompletedError(session_id)
        return project(
            state.answers,
            state.analysis,
            state.recommendations,
            history=state.history(),
            generated_at=state.completed_at,
        )

    async def export_csv(self, session_id: str) -> str:
        record = await self.export_record(session_id)
        return f"{OutputRecord.csv_header()}\n{record.to_csv_row()}\n"

    def _pending_question(self, state: SessionState) -> QuestionDefinition | None:
        if state.pending_question_id is None:
            return None
        question = resolve_question(self._flow, state, state.pending_question_id)
        # AIが言い換えた文言はトランスクリプト側に残っている
        for message in reversed(state.messages):
            metadata = message.metadata or {}
            if message.role == "assistant" and "mode" in metadata and metadata.get("question_id") == question.id:
                return question.model_copy(update={"prompt": message.content})
        return question

    def _ensure_active(self, state: SessionState) -> None:
        if state.status == "completed":
            raise SessionCompletedError(state.session_id)
        if state.status != "active":
            raise SessionNotActiveError(state.session_id, state.status)

    async def _advance(self, state: SessionState) -> SelectionMode:
        """次の質問を選んで提示する。質問が尽きたら完了処理を行う。"""
        selection = await self._selector.select_next(
            state.answers,
            state.history(self._history_window),
            extra_count=len(state.extra_questions),
        )
        state.progress = overall_progress(self._flow, state.answers)

        if selection.question is None:
            await self._complete(state)
            return selection.mode

        question = selection.question
        if question.id not in self._flow:
            state.extra_questions[question.id] = question
        state.pending_question_id = question.id
        state.add_message(
            "assistant",
            question.prompt,
            {"question_id": question.id, "step": question.step, "mode": selection.mode},
        )
        return selection.mode

    async def _complete(self, state: SessionState) -> None:
        answers = dict(state.answers)
        history = state.history()

        if self._analyzer is not None:
            analyzer = self._analyzer
            state.analysis = await self._call_with_default(
                "analyze_conversation",
                lambda: analyzer.analyze_conversation(answers, history),
                Analysis.default,
            )
        else:
            state.analysis = Analysis.default()

        if self._recommender is not None:
            recommender = self._recommender
            state.recommendations = await self._call_with_default(
                "generate_recommendations",
                lambda: recommender.generate_recommendations(answers),
                Recommendations,
            )
        else:
            state.recommendations = Recommendations()

        state.pending_question_id = None
        state.add_message("assistant", COMPLETION_MESSAGE, {"completed": True, "readiness": state.analysis.readiness})
        state.status = "completed"
        state.completed_at = datetime.now(UTC)
        logger.info("Completed interview %s", state.session_id)

    async def _call_with_default(
        self,
        operation: str,
        call: Callable[[], Awaitable[T | None]],
        default: Callable[[], T],
    ) -> T:
        try:
            result = await asyncio.wait_for(call(), timeout=self._ai_timeout)
        except asyncio.CancelledError:
            task = asyncio.current_task()
            if task is not None and task.cancelling():
                raise
            logger.warning("%s was cancelled, using defaults", operation)
            return default()
        except TimeoutError:
            logger.warning("%s timed out after %ss, using defaults", operation, self._ai_timeout)
            return default()
        except Exception as e:
            logger.warning("%s failed, using defaults: %s", operation, e)
            return default()
        if result is None:
            return default()
        return result

    def _turn_result(
        self,
        state: SessionState,
        *,
        accepted: bool,
        error: str | None = None,
        follow_up: str | None = None,
        mode: SelectionMode | None = None,
    ) -> TurnResult:
        return TurnResult(
            session_id=state.session_id,
            accepted=accepted,
            error=error,
            follow_up=follow_up,
            question=self._pending_question(state),
            progress=state.progress,
            status=state.status,
            mode=mode,
        )

    def _navigation_result(self, state: SessionState, applied: bool) -> NavigationResult:
        state.progress = overall_progress(self._flow, state.answers)
        return NavigationResult(
            session_id=state.session_id,
            applied=applied,
            question=self._pending_question(state),
            progress=state.progress,
            can_undo=bool(state.undo_stack),
            can_redo=bool(state.redo_stack),
        )
