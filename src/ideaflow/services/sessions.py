"""インタビューセッション状態の保持・排他制御・自動保存を行うストア。"""

import asyncio
import contextlib
import logging
from collections.abc import AsyncIterator
from datetime import UTC, datetime, timedelta
from typing import Any

from ideaflow.models.errors import SessionCompletedError, StorageError
from ideaflow.models.question import AnswerValue, QuestionDefinition, QuestionFlow
from ideaflow.models.session import Message, SessionState, SessionStatus, ValidationResult
from ideaflow.services.history import HistoryManager
from ideaflow.services.validator import coerce_answer, display_answer, validate
from ideaflow.storage.service import StorageService

logger = logging.getLogger(__name__)


def resolve_question(flow: QuestionFlow, state: SessionState, question_id: str) -> QuestionDefinition:
    """フロー定義またはAI生成の追加質問からIDで質問を引く。"""
    if question_id in state.extra_questions:
        return state.extra_questions[question_id]
    return flow.get(question_id)


def apply_user_turn(
    state: SessionState,
    question: QuestionDefinition,
    raw_answer: AnswerValue,
    history: HistoryManager,
) -> ValidationResult:
    """利用者の回答を検証し、合格なら状態に反映する。

    不合格の場合は状態を一切変更しない。合格の場合は変更前のスナップショットを
    Undoスタックに積んでから回答とuserメッセージを追加する。
    """
    result = validate(question, raw_answer)
    if not result.valid:
        return result

    value = coerce_answer(question, raw_answer)
    history.snapshot(state, state.pending_question_id)
    state.record_answer(question.id, value)
    state.add_message("user", display_answer(raw_answer), {"question_id": question.id})
    return result


class SessionStore:
    """セッション状態の唯一の所有者。

    同一セッションへの操作はセッション単位のasyncio.Lockで直列化する。
    変更はディープコピー上で行い、正常終了時のみコミットする。
    コミットされたセッションは dirty となり、autosave_interval に応じて保存される:

    - ``> 0``: その秒数後にバックグラウンドでまとめて保存（デバウンス）
    - ``0``: コミット時に同期保存
    - ``None``: 自動保存しない（flush() のみ）

    自動保存の失敗はログに記録し、メモリ上の状態は巻き戻さない。
    """

    def __init__(
        self,
        storage: StorageService,
        flow: QuestionFlow,
        history: HistoryManager | None = None,
        autosave_interval: float | None = 30.0,
    ) -> None:
        self._storage = storage
        self._flow = flow
        self._history = history or HistoryManager()
        self._autosave_interval = autosave_interval
        self._sessions: dict[str, SessionState] = {}
        # セッション単位の排他ロック
        self._session_locks: dict[str, asyncio.Lock] = {}
        self._dirty: set[str] = set()
        self._autosave_task: asyncio.Task[None] | None = None

    @property
    def history(self) -> HistoryManager:
        return self._history

    def lock(self, session_id: str) -> asyncio.Lock:
        """セッション単位のasyncio.Lockを取得する。"""
        if session_id not in self._session_locks:
            self._session_locks[session_id] = asyncio.Lock()
        return self._session_locks[session_id]

    async def restore(self) -> int:
        """永続化済みの全セッションをメモリに読み込む。

        Returns:
            読み込んだセッション数。

        Raises:
            StorageError: 読み込みに失敗した場合。
        """
        count = 0
        for session_id in await self._storage.list_sessions():
            if session_id in self._sessions:
                continue
            state = await self._storage.load_session(session_id)
            self._history.trim(state)
            self._sessions[session_id] = state
            count += 1
        logger.info("Restored %d sessions from storage", count)
        return count

    async def _load(self, session_id: str) -> SessionState:
        state = self._sessions.get(session_id)
        if state is not None:
            return state
        # 再起動後の再開: 永続化層から読み込む
        state = await self._storage.load_session(session_id)
        self._history.trim(state)
        # 並行して読み込まれた場合は先に登録された方を使う
        return self._sessions.setdefault(session_id, state)

    async def create_session(self) -> SessionState:
        """status=active の空のセッションを作成する。"""
        state = SessionState()
        self._sessions[state.session_id] = state
        logger.info("Created session %s", state.session_id)
        await self._mark_dirty(state.session_id)
        return state.model_copy(deep=True)

    async def get_session(self, session_id: str) -> SessionState:
        """セッション状態のコピーを返す。

        Raises:
            SessionNotFoundError: セッションが存在しない場合。
        """
        state = await self._load(session_id)
        return state.model_copy(deep=True)

    @contextlib.asynccontextmanager
    async def transaction(self, session_id: str) -> AsyncIterator[SessionState]:
        """セッションの作業コピーを排他的に貸し出す。

        ブロックが正常終了した場合のみコミットする。例外（キャンセルを含む）の
        場合は作業コピーを破棄するため、中途半端に変更されたセッションは残らない。

        Raises:
            SessionNotFoundError: セッションが存在しない場合。ロックは作成しない。
        """
        await self._load(session_id)
        async with self.lock(session_id):
            current = self._sessions[session_id]
            working = current.model_copy(deep=True)
            yield working
            if working != current:
                self._sessions[session_id] = working
                await self._mark_dirty(session_id)

    async def record_user_turn(
        self,
        session_id: str,
        raw_answer: AnswerValue,
        current_question_id: str,
    ) -> ValidationResult:
        """利用者の回答を記録する。不合格の場合は状態を変更せずにエラーを返す。

        Raises:
            SessionNotFoundError: セッションが存在しない場合。
            SessionCompletedError: インタビューが完了している場合。
            QuestionNotFoundError: 質問IDが未定義の場合。
        """
        async with self.transaction(session_id) as state:
            if state.status == "completed":
                raise SessionCompletedError(session_id)
            question = resolve_question(self._flow, state, current_question_id)
            return apply_user_turn(state, question, raw_answer, self._history)

    async def record_assistant_turn(
        self,
        session_id: str,
        content: str,
        metadata: dict[str, Any] | None = None,
    ) -> Message:
        """assistantメッセージ（次の質問または完了通知）を追加する。"""
        async with self.transaction(session_id) as state:
            if state.status == "completed":
                raise SessionCompletedError(session_id)
            return state.add_message("assistant", content, metadata)

    async def pause(self, session_id: str) -> SessionState:
        async with self.transaction(session_id) as state:
            if state.status == "completed":
                raise SessionCompletedError(session_id)
            if state.status == "active":
                state.status = "paused"
                logger.info("Paused session %s", session_id)
            return state.model_copy(deep=True)

    async def resume(self, session_id: str) -> SessionState:
        async with self.transaction(session_id) as state:
            if state.status == "completed":
                raise SessionCompletedError(session_id)
            if state.status in ("paused", "abandoned"):
                state.status = "active"
                state.last_activity_at = datetime.now(UTC)
                logger.info("Resumed session %s", session_id)
            return state.model_copy(deep=True)

    async def abandon_inactive(self, max_inactivity: timedelta, now: datetime | None = None) -> list[str]:
        """一定時間操作のない active セッションを abandoned にする。

        Returns:
            abandoned に遷移したセッションIDのリスト。
        """
        now = now or datetime.now(UTC)
        abandoned: list[str] = []
        for session_id in list(self._sessions):
            async with self.transaction(session_id) as state:
                if state.status == "active" and now - state.last_activity_at > max_inactivity:
                    state.status = "abandoned"
                    abandoned.append(session_id)
        if abandoned:
            logger.info("Marked %d inactive sessions as abandoned", len(abandoned))
        return abandoned

    def list_sessions(self, status: SessionStatus | None = None) -> list[SessionState]:
        """メモリ上のセッション一覧（コピー）を返す。"""
        return [
            s.model_copy(deep=True)
            for s in self._sessions.values()
            if status is None or s.status == status
        ]

    def statistics(self) -> dict[str, Any]:
        sessions = list(self._sessions.values())
        total = len(sessions)
        return {
            "total": total,
            "active": sum(1 for s in sessions if s.status == "active"),
            "paused": sum(1 for s in sessions if s.status == "paused"),
            "completed": sum(1 for s in sessions if s.status == "completed"),
            "abandoned": sum(1 for s in sessions if s.status == "abandoned"),
            "average_progress": sum(s.progress for s in sessions) / total if total else 0.0,
        }

    async def export_session(self, session_id: str) -> str:
        """セッション全体をJSON文字列として書き出す。"""
        state = await self._load(session_id)
        return state.model_dump_json(indent=2)

    async def _mark_dirty(self, session_id: str) -> None:
        self._dirty.add(session_id)
        if self._autosave_interval is None:
            return
        if self._autosave_interval == 0:
            try:
                await self.flush()
            except StorageError as e:
                logger.warning("Autosave failed: %s", e)
            return
        if self._autosave_task is None or self._autosave_task.done():
            self._autosave_task = asyncio.create_task(self._autosave_loop())

    async def _autosave_loop(self) -> None:
        assert self._autosave_interval is not None
        while self._dirty:
            await asyncio.sleep(self._autosave_interval)
            try:
                await self.flush()
            except StorageError as e:
                logger.warning("Autosave failed, will retry: %s", e)

    async def flush(self) -> int:
        """dirty なセッションを全て保存する。

        Returns:
            保存したセッション数。

        Raises:
            StorageError: 保存に失敗した場合。未保存分は dirty のまま残る。
        """
        pending = sorted(self._dirty)
        self._dirty.difference_update(pending)
        saved = 0
        for index, session_id in enumerate(pending):
            state = self._sessions.get(session_id)
            if state is None:
                continue
            try:
                await self._storage.save_session(state)
            except StorageError:
                self._dirty.update(pending[index:])
                raise
            saved += 1
        return saved

    async def dispose(self) -> None:
        """自動保存タスクを止め、未保存の変更を書き出す。"""
        if self._autosave_task is not None and not self._autosave_task.done():
            self._autosave_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._autosave_task
        self._autosave_task = None
        await self.flush()
