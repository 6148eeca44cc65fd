"""ideaflowサーバーの設定管理。"""

from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings

from ideaflow.services.validator import DEFAULT_VAGUE_TERMS

_PACKAGE_ROOT = Path(__file__).parent
_REPO_ROOT = _PACKAGE_ROOT.parent.parent


class ServerConfig(BaseSettings):
    """サーバー設定。環境変数から読み込み可能。"""

    model_config = {"env_prefix": "IDEAFLOW_"}

    data_dir: Path = _REPO_ROOT / ".ideaflow"
    config_dir: Path = _REPO_ROOT / "config"
    host: str = "0.0.0.0"
    port: int = 8000
    url_token: str = ""

    # AI協調者 (static の場合はAIを呼ばずスキーマ順で質問する)
    ai_mode: Literal["static", "openai", "ollama"] = "static"
    openai_api_key: str = ""
    openai_model: str = "gpt-4o-mini"
    openai_base_url: str = ""
    ai_timeout: float = 20.0
    history_window: int = 10
    max_extra_questions: int = 5

    # セッション管理
    undo_capacity: int = 10
    autosave_interval: float | None = 30.0
    abandon_after_minutes: float = 24 * 60

    # あいまい回答への再質問
    vague_reprompt_enabled: bool = False
    vague_terms: list[str] = list(DEFAULT_VAGUE_TERMS)
    max_follow_ups: int = 2

    log_level: str = "INFO"

    @property
    def questions_file(self) -> Path:
        return self.config_dir / "interview-questions.yaml"
