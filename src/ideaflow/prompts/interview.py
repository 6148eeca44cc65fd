"""インタビュー関連のMCPプロンプト定義。"""

from fastmcp import FastMCP


def register_interview_prompts(mcp: FastMCP) -> None:
    """インタビュー関連のMCPプロンプトを登録する。"""

    @mcp.prompt()
    async def start_interview_guide() -> str:
        """新しいアイデアインタビューを開始するためのプロンプト。

        セッション作成から回答の送信、完了後のエクスポートまでの流れをガイドします。
        """
        return (
            "GenAIアイデアのインタビューを開始します。\n\n"
            "## 手順\n\n"
            "1. `start_interview` ツールでセッションを開始してください。\n"
            "2. **返却されたセッションID（`session_id`）を利用者に必ず提示してください。**"
            " 中断後の再開に必要です。\n"
            "3. 返却された `question.prompt` をそのまま利用者に提示してください。\n"
            "4. 利用者の回答を `submit_answer` で送信してください。\n"
            "   - `accepted` が false の場合は `error` または `follow_up` を伝え、同じ質問に答えてもらってください。\n"
            "   - `accepted` が true の場合は次の `question` を提示してください。\n"
            "5. `status` が `completed` になったら `export_record` または `export_csv` で結果を取得してください。\n\n"
            "## 注意事項\n\n"
            "- 質問は一度に1つずつ提示してください。\n"
            "- 利用者が回答を訂正したい場合は `undo` / `redo` を使用してください。\n"
            "- 進捗は `get_progress` で確認できます。\n"
            "- **インタビューは必ずチャット内の対話で行ってください。HTMLフォームやWebページを生成してはいけません。**\n"
        )

    @mcp.prompt()
    async def resume_interview_guide(session_id: str) -> str:
        """中断したインタビューを再開するためのプロンプト。

        Args:
            session_id: 再開するセッションのID。
        """
        return (
            f"インタビューセッション `{session_id}` を再開します。\n\n"
            "## 手順\n\n"
            "1. `resume_interview` ツールでセッションを再開してください。\n"
            "2. `get_progress` で進捗を確認し、利用者に現在のステップを伝えてください。\n"
            "3. 返却された `question.prompt` を提示し、回答を `submit_answer` で送信してください。\n"
            "4. `status` が `completed` になったら `export_record` で結果を取得してください。\n\n"
            "## 注意事項\n\n"
            "- 完了済みのセッションは再開できません。結果の取得のみ行ってください。\n"
        )
