"""ideaflowのカスタム例外クラス。"""


class IdeaflowError(Exception):
    """ideaflowの基底例外クラス。"""


class SessionNotFoundError(IdeaflowError):
    """セッションが見つからない場合の例外。"""

    def __init__(self, session_id: str) -> None:
        super().__init__(f"Session not found: {session_id}")
        self.session_id = session_id


class SessionCompletedError(IdeaflowError):
    """インタビューが既に完了している場合の例外。"""

    def __init__(self, session_id: str) -> None:
        super().__init__(f"Interview already completed for session: {session_id}")
        self.session_id = session_id


class SessionNotActiveError(IdeaflowError):
    """一時停止中・放棄済みのセッションに回答しようとした場合の例外。"""

    def __init__(self, session_id: str, status: str) -> None:
        super().__init__(
            f"Session {session_id} is {status}. Resume the interview before submitting answers."
        )
        self.session_id = session_id
        self.status = status


class InterviewNotCompletedError(IdeaflowError):
    """インタビューが未完了の場合の例外。"""

    def __init__(self, session_id: str) -> None:
        super().__init__(f"Interview not completed for session: {session_id}")
        self.session_id = session_id


class QuestionNotFoundError(IdeaflowError):
    """指定された質問が見つからない場合の例外。"""

    def __init__(self, question_id: str) -> None:
        super().__init__(f"Question not found: {question_id}")
        self.question_id = question_id


class QuestionFlowError(IdeaflowError):
    """質問フロー定義の読み込み・検証エラー。"""


class StorageError(IdeaflowError):
    """ストレージ操作のエラー。"""


class UpstreamUnavailableError(IdeaflowError):
    """AI呼び出しの失敗・タイムアウト・不正応答。

    呼び出し側でフォールバックにより回復される。利用者には表示しない。
    """

    def __init__(self, operation: str, reason: str) -> None:
        super().__init__(f"{operation} unavailable: {reason}")
        self.operation = operation
        self.reason = reason
