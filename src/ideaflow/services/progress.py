"""質問フローと回答マップからステップ別・全体の進捗を算出する。"""

import math
from collections.abc import Mapping

from pydantic import BaseModel

from ideaflow.models.question import AnswerValue, QuestionFlow


class StepProgress(BaseModel):
    """1ステップ分の進捗。"""

    step: int
    step_name: str
    percentage: int
    answered: int
    total: int


class ProgressReport(BaseModel):
    """セッション全体の進捗レポート。"""

    overall: int
    current_step: int
    current_step_name: str
    steps: list[StepProgress]
    remaining_question_ids: list[str]


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def step_progress(flow: QuestionFlow, step: int, answers: Mapping[str, AnswerValue]) -> int:
    """ステップ内の出題対象質問のうち回答済みの割合（0-100）。"""
    questions = [q for q in flow.questions_for_step(step) if flow.is_applicable(q, answers)]
    if not questions:
        return 0
    answered = sum(1 for q in questions if q.id in answers)
    return _round_half_up(100 * answered / len(questions))


def overall_progress(flow: QuestionFlow, answers: Mapping[str, AnswerValue]) -> int:
    """出題対象の必須質問のうち回答済みの割合（0-100）。

    全ての必須質問に回答したときに限り100を返す。
    """
    required = [q for q in flow.applicable(answers) if q.required]
    if not required:
        return 100
    answered = sum(1 for q in required if q.id in answers)
    if answered == len(required):
        return 100
    # 四捨五入で100に届かないよう抑える
    return min(_round_half_up(100 * answered / len(required)), 99)


def current_step(flow: QuestionFlow, answers: Mapping[str, AnswerValue]) -> int:
    """未回答の必須質問を含む最小のステップ番号。全て回答済みなら最終ステップ。"""
    steps = flow.steps()
    if not steps:
        return 1
    pending = [q.step for q in flow.applicable(answers) if q.required and q.id not in answers]
    return min(pending) if pending else steps[-1]


def progress_report(flow: QuestionFlow, answers: Mapping[str, AnswerValue]) -> ProgressReport:
    steps: list[StepProgress] = []
    for step in flow.steps():
        questions = [q for q in flow.questions_for_step(step) if flow.is_applicable(q, answers)]
        steps.append(
            StepProgress(
                step=step,
                step_name=flow.step_name(step),
                percentage=step_progress(flow, step, answers),
                answered=sum(1 for q in questions if q.id in answers),
                total=len(questions),
            )
        )
    step = current_step(flow, answers)
    return ProgressReport(
        overall=overall_progress(flow, answers),
        current_step=step,
        current_step_name=flow.step_name(step),
        steps=steps,
        remaining_question_ids=[q.id for q in flow.applicable(answers) if q.id not in answers],
    )
