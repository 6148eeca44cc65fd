"""次に提示する質問を決定するセレクタ。

AI委譲モードと決定的モードの2つの戦略を持ち、AI委譲が失敗した場合は
明示的に決定的モードへフォールバックする。
"""

import asyncio
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Literal

from ideaflow.llm.protocols import QuestionGenerator
from ideaflow.models.errors import UpstreamUnavailableError
from ideaflow.models.question import AnswerValue, QuestionDefinition, QuestionFlow
from ideaflow.models.session import ChatTurn
from ideaflow.services.progress import current_step

logger = logging.getLogger(__name__)

SelectionMode = Literal["delegated", "deterministic"]


@dataclass(frozen=True)
class Selection:
    """セレクタの判定結果。question が None なら完了（これ以上の質問なし）。"""

    question: QuestionDefinition | None
    mode: SelectionMode

    @property
    def complete(self) -> bool:
        return self.question is None


class DeterministicStrategy:
    """スキーマ順に走査し、出題対象かつ未回答の最初の質問を返す。"""

    def __init__(self, flow: QuestionFlow) -> None:
        self._flow = flow

    def select(self, answers: Mapping[str, AnswerValue]) -> QuestionDefinition | None:
        for question in self._flow.questions:
            if not self._flow.is_applicable(question, answers):
                continue
            if question.id not in answers:
                return question
        return None


class DelegatedStrategy:
    """外部の質問生成に委譲する。

    失敗・タイムアウト・呼び出しのキャンセル・提案なし・不正な提案は
    すべて UpstreamUnavailableError として報告する。
    """

    def __init__(
        self,
        flow: QuestionFlow,
        generator: QuestionGenerator,
        timeout: float,
        max_extra_questions: int,
    ) -> None:
        self._flow = flow
        self._generator = generator
        self._timeout = timeout
        self._max_extra_questions = max_extra_questions

    async def select(
        self,
        answers: Mapping[str, AnswerValue],
        history: list[ChatTurn],
        extra_count: int,
    ) -> QuestionDefinition:
        try:
            generated = await asyncio.wait_for(
                self._generator.generate_next_question(dict(answers), history),
                timeout=self._timeout,
            )
        except asyncio.CancelledError:
            task = asyncio.current_task()
            if task is not None and task.cancelling():
                # ターン自体のキャンセルは呼び出し側に伝える
                raise
            raise UpstreamUnavailableError("generate_next_question", "call was cancelled") from None
        except TimeoutError:
            raise UpstreamUnavailableError("generate_next_question", f"timed out after {self._timeout}s") from None
        except UpstreamUnavailableError:
            raise
        except Exception as e:
            raise UpstreamUnavailableError("generate_next_question", repr(e)) from e

        if generated is None:
            raise UpstreamUnavailableError("generate_next_question", "no question returned")
        if generated.id in answers:
            raise UpstreamUnavailableError("generate_next_question", f"question {generated.id} already answered")

        if generated.id in self._flow:
            question = self._flow.get(generated.id)
            if not self._flow.is_applicable(question, answers):
                raise UpstreamUnavailableError(
                    "generate_next_question", f"question {generated.id} is gated off by its dependency"
                )
            # 検証ルールはフロー定義のまま、文言のみAIの言い換えを使う
            return question.model_copy(update={"prompt": generated.text})

        if extra_count >= self._max_extra_questions:
            raise UpstreamUnavailableError("generate_next_question", "extra question budget exhausted")
        step = current_step(self._flow, answers)
        return QuestionDefinition(
            id=generated.id,
            step=step,
            step_name=self._flow.step_name(step),
            prompt=generated.text,
            required=generated.required,
            min_length=generated.min_length,
            answer_type=generated.answer_type,
            help_text=generated.help_text,
        )


class NextQuestionSelector:
    """次の質問を選ぶ2状態の戦略。

    スキーマを使い切った場合はAIを呼ばずに完了を返す。それ以外は、
    質問生成器があれば委譲し、失敗時は決定的モードに遷移する。
    例外を送出するのは呼び出し中のターン自体がキャンセルされた場合のみ。
    """

    def __init__(
        self,
        flow: QuestionFlow,
        generator: QuestionGenerator | None = None,
        *,
        timeout: float = 20.0,
        max_extra_questions: int = 5,
    ) -> None:
        self._deterministic = DeterministicStrategy(flow)
        self._delegated = (
            DelegatedStrategy(flow, generator, timeout, max_extra_questions) if generator is not None else None
        )

    async def select_next(
        self,
        answers: Mapping[str, AnswerValue],
        history: list[ChatTurn],
        extra_count: int = 0,
    ) -> Selection:
        fallback = self._deterministic.select(answers)
        if fallback is None:
            return Selection(question=None, mode="deterministic")

        if self._delegated is not None:
            try:
                question = await self._delegated.select(answers, history, extra_count)
                return Selection(question=question, mode="delegated")
            except UpstreamUnavailableError as e:
                logger.warning("Falling back to deterministic question selection: %s", e)

        return Selection(question=fallback, mode="deterministic")
