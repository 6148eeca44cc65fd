"""セッション状態のUndo/Redo管理。"""

import copy
import logging

from ideaflow.models.session import SessionState, Snapshot

logger = logging.getLogger(__name__)

DEFAULT_CAPACITY = 10


class HistoryManager:
    """上限付きの2つのスナップショットスタックでUndo/Redoを行う。

    スタック自体は永続化のためSessionStateに置くが、このクラスだけが操作する。
    上限を超えた場合は最も古いエントリから破棄する。
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self._capacity = capacity

    @property
    def capacity(self) -> int:
        return self._capacity

    @staticmethod
    def _capture(state: SessionState, pending_question_id: str | None) -> Snapshot:
        return Snapshot(
            answers=copy.deepcopy(state.answers),
            messages=tuple(m.model_copy(deep=True) for m in state.messages),
            pending_question_id=pending_question_id,
        )

    @staticmethod
    def _restore(state: SessionState, snapshot: Snapshot) -> None:
        state.answers = copy.deepcopy(snapshot.answers)
        state.messages = [m.model_copy(deep=True) for m in snapshot.messages]
        state.pending_question_id = snapshot.pending_question_id

    def _push(self, stack: list[Snapshot], snapshot: Snapshot) -> None:
        stack.append(snapshot)
        if len(stack) > self._capacity:
            del stack[: len(stack) - self._capacity]

    def snapshot(self, state: SessionState, pending_question_id: str | None) -> Snapshot:
        """変更前の状態をUndoスタックに積み、Redoスタックを空にする。"""
        snap = self._capture(state, pending_question_id)
        self._push(state.undo_stack, snap)
        state.redo_stack.clear()
        return snap

    def undo(self, state: SessionState) -> bool:
        if not state.undo_stack:
            return False
        self._push(state.redo_stack, self._capture(state, state.pending_question_id))
        self._restore(state, state.undo_stack.pop())
        logger.debug("Undo applied to session %s", state.session_id)
        return True

    def redo(self, state: SessionState) -> bool:
        if not state.redo_stack:
            return False
        self._push(state.undo_stack, self._capture(state, state.pending_question_id))
        self._restore(state, state.redo_stack.pop())
        logger.debug("Redo applied to session %s", state.session_id)
        return True

    def trim(self, state: SessionState) -> None:
        """上限を超えたスタックを切り詰める（読み込み時用）。"""
        for stack in (state.undo_stack, state.redo_stack):
            if len(stack) > self._capacity:
                del stack[: len(stack) - self._capacity]
