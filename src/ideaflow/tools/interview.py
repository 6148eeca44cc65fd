"""インタビュー用のMCPツール定義。"""

from typing import Any

from fastmcp import FastMCP

from ideaflow.models.errors import IdeaflowError
from ideaflow.models.session import SessionState
from ideaflow.services.interview import InterviewService


def _session_summary(state: SessionState) -> dict[str, Any]:
    return {
        "session_id": state.session_id,
        "status": state.status,
        "progress": state.progress,
        "pending_question_id": state.pending_question_id,
        "last_activity_at": state.last_activity_at.isoformat(),
    }


def register_interview_tools(
    mcp: FastMCP,
    interview_service: InterviewService,
    *,
    abandon_after_minutes: float | None = None,
) -> None:
    """インタビュー関連のMCPツールを登録する。"""

    @mcp.tool()
    async def start_interview() -> dict[str, Any]:
        """新しいインタビューセッションを開始し、最初の質問を返す。

        返却されるsession_idを以降のツール呼び出しで使用します。
        """
        try:
            result = await interview_service.start_interview()
            return result.model_dump(mode="json")
        except IdeaflowError as e:
            return {"error": type(e).__name__, "message": str(e)}

    @mcp.tool()
    async def submit_answer(session_id: str, answer: str | bool | list[str]) -> dict[str, Any]:
        """現在の質問への回答を送信する。

        accepted が false の場合は error または follow_up を利用者に伝え、
        同じ質問への回答を再度求めてください。

        Args:
            session_id: セッションID。
            answer: 回答（テキスト、はい/いいえ、または複数選択のリスト）。
        """
        try:
            result = await interview_service.submit_answer(session_id, answer)
            return result.model_dump(mode="json")
        except IdeaflowError as e:
            return {"error": type(e).__name__, "message": str(e)}

    @mcp.tool()
    async def get_current_question(session_id: str) -> dict[str, Any]:
        """提示中の質問を取得する。

        Args:
            session_id: セッションID。
        """
        try:
            question = await interview_service.get_current_question(session_id)
            return {
                "session_id": session_id,
                "question": question.model_dump(mode="json") if question is not None else None,
            }
        except IdeaflowError as e:
            return {"error": type(e).__name__, "message": str(e)}

    @mcp.tool()
    async def undo(session_id: str) -> dict[str, Any]:
        """直前の回答を取り消し、その質問に戻る。

        Args:
            session_id: セッションID。
        """
        try:
            result = await interview_service.undo(session_id)
            return result.model_dump(mode="json")
        except IdeaflowError as e:
            return {"error": type(e).__name__, "message": str(e)}

    @mcp.tool()
    async def redo(session_id: str) -> dict[str, Any]:
        """undo で取り消した回答をやり直す。

        Args:
            session_id: セッションID。
        """
        try:
            result = await interview_service.redo(session_id)
            return result.model_dump(mode="json")
        except IdeaflowError as e:
            return {"error": type(e).__name__, "message": str(e)}

    @mcp.tool()
    async def pause_interview(session_id: str) -> dict[str, Any]:
        """インタビューを一時停止する。

        Args:
            session_id: セッションID。
        """
        try:
            state = await interview_service.pause(session_id)
            return _session_summary(state)
        except IdeaflowError as e:
            return {"error": type(e).__name__, "message": str(e)}

    @mcp.tool()
    async def resume_interview(session_id: str) -> dict[str, Any]:
        """一時停止または放棄されたインタビューを再開する。

        プロセス再起動後でも、保存済みのセッションであれば再開できます。

        Args:
            session_id: セッションID。
        """
        try:
            state = await interview_service.resume(session_id)
            question = await interview_service.get_current_question(session_id)
            return {
                **_session_summary(state),
                "question": question.model_dump(mode="json") if question is not None else None,
            }
        except IdeaflowError as e:
            return {"error": type(e).__name__, "message": str(e)}

    @mcp.tool()
    async def get_progress(session_id: str) -> dict[str, Any]:
        """ステップ別・全体の進捗を取得する。

        Args:
            session_id: セッションID。
        """
        try:
            report = await interview_service.get_progress(session_id)
            return {"session_id": session_id, **report.model_dump(mode="json")}
        except IdeaflowError as e:
            return {"error": type(e).__name__, "message": str(e)}

    @mcp.tool()
    async def get_session(session_id: str) -> dict[str, Any]:
        """セッションの回答と会話履歴を取得する。

        Args:
            session_id: セッションID。
        """
        try:
            state = await interview_service.get_session(session_id)
            return {
                **_session_summary(state),
                "answers": state.answers,
                "messages": [m.model_dump(mode="json") for m in state.messages],
                "completed_at": state.completed_at.isoformat() if state.completed_at else None,
            }
        except IdeaflowError as e:
            return {"error": type(e).__name__, "message": str(e)}

    @mcp.tool()
    async def export_record(session_id: str) -> dict[str, Any]:
        """完了したインタビューから出力レコードを生成する。

        Args:
            session_id: セッションID。
        """
        try:
            record = await interview_service.export_record(session_id)
            return {
                "session_id": session_id,
                "record": record.model_dump(),
                "missing_critical_fields": record.missing_critical_fields(),
            }
        except IdeaflowError as e:
            return {"error": type(e).__name__, "message": str(e)}

    @mcp.tool()
    async def export_csv(session_id: str) -> dict[str, Any]:
        """完了したインタビューの出力レコードをCSV形式で取得する。

        Args:
            session_id: セッションID。
        """
        try:
            content = await interview_service.export_csv(session_id)
            return {"session_id": session_id, "format": "csv", "content": content}
        except IdeaflowError as e:
            return {"error": type(e).__name__, "message": str(e)}

    @mcp.tool()
    async def get_statistics() -> dict[str, Any]:
        """セッション全体の統計を取得する。

        一定時間操作のないセッションは集計前に abandoned として扱います。
        """
        try:
            if abandon_after_minutes is not None:
                await interview_service.abandon_inactive(abandon_after_minutes)
            return interview_service.statistics()
        except IdeaflowError as e:
            return {"error": type(e).__name__, "message": str(e)}
