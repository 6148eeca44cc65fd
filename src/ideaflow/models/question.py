"""質問定義と静的質問フローのデータモデル。"""

from collections.abc import Mapping
from pathlib import Path
from typing import Literal, Self

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from ideaflow.models.errors import QuestionFlowError, QuestionNotFoundError

AnswerValue = str | bool | list[str]
AnswerMap = dict[str, AnswerValue]
AnswerType = Literal["text", "boolean", "multiselect"]


class Dependency(BaseModel):
    """質問の出題条件。指定質問の回答が期待値と一致する場合のみ出題する。"""

    model_config = ConfigDict(frozen=True)

    question_id: str
    expected_answer: AnswerValue

    def is_satisfied(self, answers: Mapping[str, AnswerValue]) -> bool:
        if self.question_id not in answers:
            return False
        return answers[self.question_id] == self.expected_answer


class QuestionDefinition(BaseModel):
    """インタビューの個別質問定義。"""

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    step: int = Field(ge=1)
    step_name: str
    prompt: str
    required: bool = True
    min_length: int | None = Field(default=None, ge=1)
    answer_type: AnswerType = "text"
    depends_on: Dependency | None = None
    help_text: str | None = None


class QuestionFlow(BaseModel):
    """順序付きの質問カタログ。

    並び順は決定的フォールバック時の走査順を兼ねる。
    """

    model_config = ConfigDict(frozen=True)

    questions: tuple[QuestionDefinition, ...]

    @model_validator(mode="after")
    def _check_questions(self) -> Self:
        seen: set[str] = set()
        for question in self.questions:
            if question.id in seen:
                raise ValueError(f"Duplicate question id: {question.id}")
            if question.depends_on is not None and question.depends_on.question_id not in seen:
                # 依存先は必ず先行する質問
                raise ValueError(
                    f"Question {question.id} depends on {question.depends_on.question_id}, "
                    "which is not defined before it"
                )
            seen.add(question.id)
        return self

    @classmethod
    def from_yaml(cls, path: Path) -> "QuestionFlow":
        """YAMLファイルから質問フローを読み込む。

        Raises:
            QuestionFlowError: ファイルが存在しない、または定義が不正な場合。
        """
        try:
            with open(path, encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except FileNotFoundError:
            raise QuestionFlowError(f"Question flow file not found: {path}") from None
        except yaml.YAMLError as e:
            raise QuestionFlowError(f"Invalid YAML in {path}: {e}") from e

        if not isinstance(data, dict) or "questions" not in data:
            raise QuestionFlowError(f"Question flow file has no 'questions' list: {path}")
        try:
            return cls.model_validate({"questions": data["questions"]})
        except ValidationError as e:
            raise QuestionFlowError(f"Invalid question flow in {path}: {e}") from e

    def __len__(self) -> int:
        return len(self.questions)

    def __contains__(self, question_id: object) -> bool:
        return any(q.id == question_id for q in self.questions)

    def get(self, question_id: str) -> QuestionDefinition:
        """IDで質問定義を取得する。

        Raises:
            QuestionNotFoundError: 質問が存在しない場合。
        """
        for question in self.questions:
            if question.id == question_id:
                return question
        raise QuestionNotFoundError(question_id)

    def steps(self) -> list[int]:
        return sorted({q.step for q in self.questions})

    def step_name(self, step: int) -> str:
        for question in self.questions:
            if question.step == step:
                return question.step_name
        return f"Step {step}"

    def questions_for_step(self, step: int) -> list[QuestionDefinition]:
        return [q for q in self.questions if q.step == step]

    def is_applicable(self, question: QuestionDefinition, answers: Mapping[str, AnswerValue]) -> bool:
        """依存条件を満たす（または依存のない）質問かを判定する。"""
        return question.depends_on is None or question.depends_on.is_satisfied(answers)

    def applicable(self, answers: Mapping[str, AnswerValue]) -> list[QuestionDefinition]:
        return [q for q in self.questions if self.is_applicable(q, answers)]
