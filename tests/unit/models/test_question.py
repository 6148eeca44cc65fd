"""質問定義・質問フローモデルのユニットテスト。"""

from pathlib import Path

import pytest
from pydantic import ValidationError

from ideaflow.models.errors import QuestionFlowError, QuestionNotFoundError
from ideaflow.models.question import Dependency, QuestionDefinition, QuestionFlow


def _question(question_id: str, step: int = 1, **kwargs: object) -> QuestionDefinition:
    return QuestionDefinition(id=question_id, step=step, step_name=f"Step {step}", prompt=f"{question_id}?", **kwargs)


class TestQuestionDefinition:
    def test_defaults(self) -> None:
        question = _question("q1")
        assert question.required is True
        assert question.answer_type == "text"
        assert question.min_length is None
        assert question.depends_on is None

    def test_step_must_be_positive(self) -> None:
        with pytest.raises(ValidationError):
            _question("q1", step=0)

    def test_is_immutable(self) -> None:
        question = _question("q1")
        with pytest.raises(ValidationError):
            question.prompt = "changed"  # type: ignore[misc]


class TestDependency:
    def test_satisfied_when_answer_matches(self) -> None:
        dependency = Dependency(question_id="gate", expected_answer=True)
        assert dependency.is_satisfied({"gate": True})

    def test_not_satisfied_when_unanswered_or_different(self) -> None:
        dependency = Dependency(question_id="gate", expected_answer=True)
        assert not dependency.is_satisfied({})
        assert not dependency.is_satisfied({"gate": False})


class TestQuestionFlow:
    def test_rejects_duplicate_ids(self) -> None:
        with pytest.raises(ValidationError, match="Duplicate question id"):
            QuestionFlow(questions=(_question("q1"), _question("q1")))

    def test_rejects_dependency_on_later_question(self) -> None:
        dependent = _question("q1", depends_on=Dependency(question_id="q2", expected_answer=True))
        with pytest.raises(ValidationError, match="not defined before it"):
            QuestionFlow(questions=(dependent, _question("q2")))

    def test_get_unknown_question_raises(self) -> None:
        flow = QuestionFlow(questions=(_question("q1"),))
        with pytest.raises(QuestionNotFoundError) as exc_info:
            flow.get("missing")
        assert exc_info.value.question_id == "missing"

    def test_steps_and_step_names(self) -> None:
        flow = QuestionFlow(questions=(_question("a", 2), _question("b", 1), _question("c", 2)))
        assert flow.steps() == [1, 2]
        assert [q.id for q in flow.questions_for_step(2)] == ["a", "c"]
        assert flow.step_name(2) == "Step 2"
        assert flow.step_name(9) == "Step 9"

    def test_applicable_excludes_unmet_dependency(self) -> None:
        gate = _question("gate", answer_type="boolean")
        detail = _question("detail", depends_on=Dependency(question_id="gate", expected_answer=True))
        flow = QuestionFlow(questions=(gate, detail))

        assert [q.id for q in flow.applicable({})] == ["gate"]
        assert [q.id for q in flow.applicable({"gate": False})] == ["gate"]
        assert [q.id for q in flow.applicable({"gate": True})] == ["gate", "detail"]

    def test_contains_and_len(self) -> None:
        flow = QuestionFlow(questions=(_question("a"), _question("b")))
        assert "a" in flow
        assert "z" not in flow
        assert len(flow) == 2


class TestQuestionFlowFromYaml:
    def test_loads_bundled_flow(self, flow: QuestionFlow) -> None:
        assert flow.steps() == [1, 2, 3, 4, 5]
        assert flow.questions[0].id == "idea_description"
        assert flow.get("problem_statement").min_length == 20
        assert flow.get("regulatory_details").depends_on == Dependency(
            question_id="regulatory_review", expected_answer=True
        )

    def test_missing_file_raises(self, tmp_path: Path) -> None:
        with pytest.raises(QuestionFlowError, match="not found"):
            QuestionFlow.from_yaml(tmp_path / "missing.yaml")

    def test_invalid_yaml_raises(self, tmp_path: Path) -> None:
        path = tmp_path / "broken.yaml"
        path.write_text("questions: [\n", encoding="utf-8")
        with pytest.raises(QuestionFlowError, match="Invalid YAML"):
            QuestionFlow.from_yaml(path)

    def test_missing_questions_key_raises(self, tmp_path: Path) -> None:
        path = tmp_path / "empty.yaml"
        path.write_text("steps: []\n", encoding="utf-8")
        with pytest.raises(QuestionFlowError, match="no 'questions' list"):
            QuestionFlow.from_yaml(path)

    def test_invalid_definition_raises(self, tmp_path: Path) -> None:
        path = tmp_path / "invalid.yaml"
        path.write_text("questions:\n  - id: q1\n    step: 0\n    step_name: x\n    prompt: y\n", encoding="utf-8")
        with pytest.raises(QuestionFlowError, match="Invalid question flow"):
            QuestionFlow.from_yaml(path)
