"""進捗計算のユニットテスト。"""

from ideaflow.models.question import QuestionFlow
from ideaflow.services.progress import current_step, overall_progress, progress_report, step_progress


class TestOverallProgress:
    def test_nothing_answered(self, flow: QuestionFlow) -> None:
        assert overall_progress(flow, {}) == 0

    def test_one_of_fifteen_rounds_half_up(self, flow: QuestionFlow) -> None:
        # 規制審査の詳細は未出題のため分母は15
        assert overall_progress(flow, {"problem_statement": "Manual log triage takes 4 hours daily"}) == 7

    def test_capped_below_100_until_complete(self, flow: QuestionFlow, valid_answers: dict[str, str]) -> None:
        answers = dict(valid_answers)
        answers.pop("success_metrics")
        assert overall_progress(flow, answers) == 93
        answers.pop("potential_risks")
        assert overall_progress(flow, answers) == 87

    def test_100_only_when_all_required_answered(self, flow: QuestionFlow, valid_answers: dict[str, str]) -> None:
        answers: dict[str, str | bool] = dict(valid_answers)
        answers["regulatory_review"] = False
        assert overall_progress(flow, answers) == 100

        # 依存質問が出題対象になると分母が増える
        answers["regulatory_review"] = True
        assert overall_progress(flow, answers) == 94

    def test_monotonic_as_answers_accumulate(self, flow: QuestionFlow, valid_answers: dict[str, str]) -> None:
        answers: dict[str, str] = {}
        previous = 0
        for question_id, value in valid_answers.items():
            answers[question_id] = value
            current = overall_progress(flow, answers)
            assert current >= previous
            previous = current
        assert previous == 100


class TestStepProgress:
    def test_step_percentage(self, flow: QuestionFlow) -> None:
        answers = {"problem_statement": "x" * 20}
        assert step_progress(flow, 2, answers) == 33
        assert step_progress(flow, 1, answers) == 0

    def test_dependent_question_excluded_until_gate_met(self, flow: QuestionFlow) -> None:
        answers = {"potential_risks": "x", "mitigation_strategies": "x", "regulatory_review": False}
        assert step_progress(flow, 5, answers) == 75

    def test_unknown_step_is_zero(self, flow: QuestionFlow) -> None:
        assert step_progress(flow, 42, {}) == 0


class TestCurrentStep:
    def test_starts_at_first_step(self, flow: QuestionFlow) -> None:
        assert current_step(flow, {}) == 1

    def test_lowest_step_with_missing_answer(self, flow: QuestionFlow) -> None:
        answers = {"idea_description": "x", "idea_name": "x", "target_users": "x"}
        assert current_step(flow, answers) == 2

    def test_last_step_when_complete(self, flow: QuestionFlow, valid_answers: dict[str, str]) -> None:
        assert current_step(flow, valid_answers) == 5


class TestProgressReport:
    def test_report_contents(self, flow: QuestionFlow) -> None:
        report = progress_report(flow, {"idea_description": "x", "idea_name": "x"})
        assert report.overall == 13
        assert report.current_step == 2
        assert report.current_step_name == "Business Case"
        assert [s.percentage for s in report.steps] == [100, 0, 0, 0, 0]
        assert report.steps[4].total == 4
        assert report.remaining_question_ids[0] == "problem_statement"
        assert "regulatory_details" not in report.remaining_question_ids
