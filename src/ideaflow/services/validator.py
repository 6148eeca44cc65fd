"""回答バリデーションと回答値の型変換。"""

from dataclasses import dataclass, field

from ideaflow.models.question import AnswerValue, QuestionDefinition
from ideaflow.models.session import ValidationResult

_TRUE_WORDS = frozenset({"yes", "y", "true"})
_FALSE_WORDS = frozenset({"no", "n", "false"})

DEFAULT_VAGUE_TERMS = ("maybe", "possibly", "not sure", "dont know", "don't know")


def _as_text(raw_answer: AnswerValue) -> str:
    if isinstance(raw_answer, bool):
        return "yes" if raw_answer else "no"
    if isinstance(raw_answer, list):
        return ", ".join(item.strip() for item in raw_answer if item.strip())
    return raw_answer.strip()


def display_answer(raw_answer: AnswerValue) -> str:
    """トランスクリプトに残す回答テキスト。"""
    if isinstance(raw_answer, str):
        return raw_answer
    return _as_text(raw_answer)


def _parse_bool(raw_answer: AnswerValue) -> bool | None:
    if isinstance(raw_answer, bool):
        return raw_answer
    word = _as_text(raw_answer).lower().rstrip(".!")
    if word in _TRUE_WORDS:
        return True
    if word in _FALSE_WORDS:
        return False
    return None


def validate(question: QuestionDefinition, raw_answer: AnswerValue) -> ValidationResult:
    """回答が質問定義の制約を満たすか判定する。

    入力を変更しない純粋関数。同じ引数には常に同じ結果を返す。
    呼び出し側は不合格の場合に会話状態を進めてはならない。
    """
    text = _as_text(raw_answer)

    if not text:
        if question.required:
            return ValidationResult(valid=False, error="This field is required")
        return ValidationResult(valid=True)

    if question.answer_type == "boolean":
        if _parse_bool(raw_answer) is None:
            return ValidationResult(valid=False, error="Please answer yes or no")
        return ValidationResult(valid=True)

    if question.min_length is not None and len(text) < question.min_length:
        return ValidationResult(
            valid=False,
            error=f"Please provide more detail (minimum {question.min_length} characters)",
        )

    return ValidationResult(valid=True)


def coerce_answer(question: QuestionDefinition, raw_answer: AnswerValue) -> AnswerValue:
    """検証済みの回答を回答マップに格納する型に変換する。

    任意質問への空回答は型によらず空文字列として格納する。
    """
    if not question.required and not _as_text(raw_answer):
        return ""
    if question.answer_type == "boolean":
        parsed = _parse_bool(raw_answer)
        if parsed is None:
            raise ValueError(f"Not a yes/no answer for {question.id}: {raw_answer!r}")
        return parsed
    if question.answer_type == "multiselect":
        items = raw_answer if isinstance(raw_answer, list) else _as_text(raw_answer).split(",")
        return [item.strip() for item in items if item.strip()]
    return _as_text(raw_answer)


@dataclass(frozen=True)
class VaguenessPolicy:
    """あいまいな回答に対する再質問ポリシー。

    キーワード一致のため正当な回答でも誤検知しうる。既定では無効。
    """

    enabled: bool = False
    terms: tuple[str, ...] = DEFAULT_VAGUE_TERMS
    max_follow_ups: int = 2
    prompt: str = (
        "It seems you might be uncertain. Could you share what you know so far, "
        "or what specific aspects you need help with?"
    )
    skip_types: frozenset[str] = field(default_factory=lambda: frozenset({"boolean"}))

    def follow_up_for(self, question: QuestionDefinition, raw_answer: AnswerValue, asked: int) -> str | None:
        """再質問が必要ならその文言を返す。"""
        if not self.enabled or asked >= self.max_follow_ups:
            return None
        if question.answer_type in self.skip_types:
            return None
        lowered = _as_text(raw_answer).lower()
        if any(term in lowered for term in self.terms):
            return self.prompt
        return None
