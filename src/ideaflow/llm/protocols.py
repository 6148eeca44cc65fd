"""インタビューのコアが依存するAI協調者のインターフェース。"""

from typing import Protocol

from ideaflow.models.analysis import Analysis, GeneratedQuestion, Recommendations
from ideaflow.models.question import AnswerMap
from ideaflow.models.session import ChatTurn


class QuestionGenerator(Protocol):
    async def generate_next_question(
        self, answers: AnswerMap, history: list[ChatTurn]
    ) -> GeneratedQuestion | None:
        """次の質問を提案する。失敗時は例外、提案なしは None。"""
        ...


class ConversationAnalyzer(Protocol):
    async def analyze_conversation(self, answers: AnswerMap, history: list[ChatTurn]) -> Analysis | None:
        """完了時に一度だけ呼ばれる会話全体の分析。"""
        ...


class RecommendationGenerator(Protocol):
    async def generate_recommendations(self, answers: AnswerMap) -> Recommendations:
        """完了時に一度だけ呼ばれる4項目の推奨生成。"""
        ...
