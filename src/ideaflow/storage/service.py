"""ローカルファイルシステムベースのセッション永続化。"""

import json
import logging
from pathlib import Path

from pydantic import ValidationError

from ideaflow.models.errors import SessionNotFoundError, StorageError
from ideaflow.models.session import SessionState

logger = logging.getLogger(__name__)


class StorageService:
    """ローカルファイルシステムを利用したセッションスナップショットの永続化層。

    セッションごとに ``sessions/<id>/session.json`` を1つ書き出す。
    SessionStoreへ注入される永続化ポートであり、保存形式以外の判断は持たない。
    """

    def __init__(self, data_dir: Path) -> None:
        self._data_dir = data_dir
        self._sessions_dir = data_dir / "sessions"

    def _session_dir(self, session_id: str) -> Path:
        # ディレクトリトラバーサル防止
        safe_id = Path(session_id).name
        if not safe_id or safe_id in (".", "..") or safe_id != session_id:
            raise StorageError(f"Invalid session ID: {session_id}")
        return self._sessions_dir / safe_id

    def _session_file(self, session_id: str) -> Path:
        return self._session_dir(session_id) / "session.json"

    async def save_session(self, state: SessionState) -> None:
        """セッションをファイルシステムに保存する。

        一時ファイルに書き出してから置き換えるため、途中で失敗しても既存ファイルは壊れない。

        Raises:
            StorageError: 書き込みに失敗した場合。
        """
        session_dir = self._session_dir(state.session_id)
        session_file = self._session_file(state.session_id)
        tmp_file = session_file.with_suffix(".json.tmp")
        try:
            session_dir.mkdir(parents=True, exist_ok=True)
            tmp_file.write_text(state.model_dump_json(indent=2), encoding="utf-8")
            tmp_file.replace(session_file)
        except OSError as e:
            raise StorageError(f"Failed to save session {state.session_id}: {e}") from e
        logger.debug("Saved session %s", state.session_id)

    async def load_session(self, session_id: str) -> SessionState:
        """セッションをファイルシステムから読み込む。

        Raises:
            SessionNotFoundError: セッションが存在しない場合。
            StorageError: ファイルが壊れている場合。
        """
        session_file = self._session_file(session_id)
        if not session_file.exists():
            raise SessionNotFoundError(session_id)
        try:
            data = json.loads(session_file.read_text(encoding="utf-8"))
            return SessionState.model_validate(data)
        except (OSError, json.JSONDecodeError, ValidationError) as e:
            raise StorageError(f"Failed to load session {session_id}: {e}") from e

    async def list_sessions(self) -> list[str]:
        """保存されているセッションIDの一覧を返す。"""
        if not self._sessions_dir.exists():
            return []
        return sorted(d.name for d in self._sessions_dir.iterdir() if (d / "session.json").is_file())
