"""テスト共通フィクスチャ。"""

from pathlib import Path

import pytest

from ideaflow.config import ServerConfig
from ideaflow.models.analysis import Analysis, GeneratedQuestion, Recommendations
from ideaflow.models.question import AnswerMap, QuestionFlow
from ideaflow.models.session import ChatTurn
from ideaflow.services.history import HistoryManager
from ideaflow.services.interview import InterviewService
from ideaflow.services.selector import NextQuestionSelector
from ideaflow.services.sessions import SessionStore
from ideaflow.storage.service import StorageService


class FakeAssistant:
    """呼び出しを記録し、あらかじめ与えた応答を返すAI協調者のフェイク。"""

    def __init__(
        self,
        questions: list[GeneratedQuestion | None | Exception] | None = None,
        analysis: Analysis | None | Exception = None,
        recommendations: Recommendations | Exception | None = None,
    ) -> None:
        self.questions = list(questions or [])
        self.analysis = analysis
        self.recommendations = recommendations
        self.question_calls: list[tuple[AnswerMap, list[ChatTurn]]] = []
        self.analysis_calls = 0
        self.recommendation_calls = 0

    async def generate_next_question(self, answers: AnswerMap, history: list[ChatTurn]) -> GeneratedQuestion | None:
        self.question_calls.append((dict(answers), list(history)))
        if not self.questions:
            return None
        response = self.questions.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    async def analyze_conversation(self, answers: AnswerMap, history: list[ChatTurn]) -> Analysis | None:
        self.analysis_calls += 1
        if isinstance(self.analysis, Exception):
            raise self.analysis
        return self.analysis

    async def generate_recommendations(self, answers: AnswerMap) -> Recommendations:
        self.recommendation_calls += 1
        if isinstance(self.recommendations, Exception):
            raise self.recommendations
        return self.recommendations or Recommendations()


@pytest.fixture
def tmp_data_dir(tmp_path: Path) -> Path:
    """テスト用の一時データディレクトリ。"""
    return tmp_path / "ideaflow-test"


@pytest.fixture
def config_dir() -> Path:
    """設定ファイルディレクトリ。"""
    return Path(__file__).parent.parent / "config"


@pytest.fixture
def flow(config_dir: Path) -> QuestionFlow:
    """同梱の質問フロー定義。"""
    return QuestionFlow.from_yaml(config_dir / "interview-questions.yaml")


@pytest.fixture
def storage(tmp_data_dir: Path) -> StorageService:
    """テスト用StorageService。"""
    return StorageService(data_dir=tmp_data_dir)


@pytest.fixture
def history() -> HistoryManager:
    return HistoryManager(capacity=10)


@pytest.fixture
def store(storage: StorageService, flow: QuestionFlow, history: HistoryManager) -> SessionStore:
    """自動保存なしのSessionStore。"""
    return SessionStore(storage, flow, history=history, autosave_interval=None)


@pytest.fixture
def interview_service(flow: QuestionFlow, store: SessionStore) -> InterviewService:
    """AIなし（決定的モードのみ）のInterviewService。"""
    return InterviewService(flow, store, NextQuestionSelector(flow))


@pytest.fixture
def server_config(tmp_data_dir: Path, config_dir: Path) -> ServerConfig:
    """テスト用ServerConfig。"""
    return ServerConfig(data_dir=tmp_data_dir, config_dir=config_dir, autosave_interval=0)


@pytest.fixture
def valid_answers() -> dict[str, str]:
    """同梱フローの全質問に対する妥当な回答（規制審査なし）。"""
    return {
        "idea_description": "Use an LLM to classify support tickets and route them to the right team.",
        "idea_name": "Ticket Router",
        "problem_statement": "Manual triage of support tickets takes agents 4 hours every day.",
        "target_users": "Support agents and team leads",
        "expected_benefits": "Reduce triage time by 80% and cut first response time in half",
        "ai_solution_approach": "An LLM classifies incoming tickets by category and urgency",
        "data_sources": "Historical tickets are available in the helpdesk database",
        "systems_integration": "Zendesk via its REST API",
        "technical_feasibility": "Yes, but we need more GPUs",
        "investment_timeline": "POC in 3 months, production in 6 months",
        "resources_needed": "2 ML engineers and 1 backend engineer, about $150K",
        "potential_risks": "Misrouted tickets and exposure of customer data",
        "mitigation_strategies": "Human review of low-confidence predictions",
        "regulatory_review": "no",
        "success_metrics": "Triage time per ticket and routing accuracy",
    }


@pytest.fixture
def make_assistant() -> type[FakeAssistant]:
    """FakeAssistantのファクトリ。"""
    return FakeAssistant
