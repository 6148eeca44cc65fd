"""回答マップを固定スキーマの出力レコードへ射影する。

各フィールドは FieldRule として宣言し、次の優先順で値を決める:

1. フィールド名と完全一致するキー
2. 別名キー（宣言順）
3. 関連する自由記述からの導出ヒューリスティック
4. AI由来の値（フォールバックでない分析、または推奨）
5. プレースホルダー

ヒューリスティックとAI値が両方ある場合はヒューリスティックを優先する。
project() は純粋関数で、同じ入力には同じレコードを返す。
"""

import hashlib
import json
import re
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from ideaflow.models.analysis import Analysis, Recommendations
from ideaflow.models.output import FORM_VERSION, PLACEHOLDER, OutputRecord
from ideaflow.models.question import AnswerValue
from ideaflow.models.session import ChatTurn

Answers = Mapping[str, AnswerValue]
AISources = Mapping[str, str]

ANALYSIS_PENDING = "Analysis pending"
NOT_APPLICABLE = "N/A"
TRI_STATE = ("Yes", "No", "Partial")


def _text(value: AnswerValue | None) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "Yes" if value else "No"
    if isinstance(value, list):
        return "; ".join(item.strip() for item in value if item.strip())
    return value.strip()


def _lower(answers: Answers, *keys: str) -> str:
    return " ".join(_text(answers.get(key)) for key in keys).strip().lower()


def _solution_text(answers: Answers) -> str:
    return _lower(answers, "ai_solution_approach", "proposed_solution", "solution_description")


def _first_match(text: str, rules: Sequence[tuple[tuple[str, ...], str]]) -> str | None:
    for keywords, label in rules:
        if any(keyword in text for keyword in keywords):
            return label
    return None


def _has_word(text: str, *words: str) -> bool:
    """語の一部ではなく単語として含まれるか。"know" は "no" に一致しない。"""
    return any(re.search(rf"\b{re.escape(word)}\b", text) for word in words)


# --- 三値正規化 -------------------------------------------------------------


def normalize_can_execute(text: str) -> str | None:
    """「実行できるか」の自由記述を Yes/No/Partial に正規化する。"""
    lower = text.lower()
    if _has_word(lower, "yes") and not _has_word(lower, "but", "however"):
        return "Yes"
    if _has_word(lower, "no") or "cannot" in lower or "can't" in lower:
        return "No"
    if "partial" in lower or _has_word(lower, "some", "but", "however"):
        return "Partial"
    return None


def normalize_data_availability(text: str) -> str | None:
    lower = text.lower()
    if "available" in lower or _has_word(lower, "have") or "exist" in lower:
        if "partial" in lower or _has_word(lower, "some") or "limited" in lower:
            return "Partial"
        if "unavailable" in lower or "not available" in lower:
            return "No"
        return "Yes"
    if "no data" in lower or "unavailable" in lower or "need to collect" in lower:
        return "No"
    return None


def normalize_integration_capability(text: str) -> str | None:
    lower = text.lower()
    if "no integration" in lower or "cannot integrate" in lower:
        return "No"
    if _has_word(lower, "api", "apis") or "integrate" in lower or "connect" in lower:
        if "partial" in lower or _has_word(lower, "some") or "limited" in lower:
            return "Partial"
        return "Yes"
    return None


# --- 導出ヒューリスティック ---------------------------------------------------

_AI_TASK_RULES: tuple[tuple[tuple[str, ...], str], ...] = (
    (("classif",), "Classification"),
    (("detect",), "Detection"),
    (("predict",), "Prediction"),
    (("generat",), "Generation"),
    (("convers", "chat"), "Conversational AI"),
    (("summar",), "Summarization"),
    (("extract",), "Information Extraction"),
    (("translat",), "Translation"),
    (("search", "retriev"), "Search/Retrieval"),
)

_AI_METHOD_RULES: tuple[tuple[tuple[str, ...], str], ...] = (
    (("gpt", "llm", "language model"), "Large Language Model (LLM)"),
    (("neural", "deep learning"), "Deep Learning"),
    (("machine learning", "ml model"), "Machine Learning"),
    (("nlp", "natural language"), "Natural Language Processing"),
    (("computer vision", "image"), "Computer Vision"),
)

_AI_OUTPUT_RULES: tuple[tuple[tuple[str, ...], str], ...] = (
    (("classif",), "Category labels with confidence scores"),
    (("detect",), "Detection alerts with risk scores"),
    (("predict",), "Predictions with probability scores"),
    (("generat", "chat"), "Generated text responses"),
    (("summar",), "Summary text"),
    (("extract",), "Extracted structured data"),
)

_PERCENT_RE = re.compile(r"\d+%")
_OTHER_DETAIL_SOURCES = (
    ("systems_integration", "Integration"),
    ("data_sources", "Data"),
    ("business_priority", "Priority"),
)


def derive_opportunity_type(answers: Answers) -> str | None:
    solution = _solution_text(answers)
    problem = _lower(answers, "problem_statement", "business_problem")
    if any(k in solution for k in ("real-time", "ensemble")) or any(
        k in problem for k in ("million", "company-wide")
    ):
        return "Transformative Idea"
    if any(k in solution for k in ("scale", "expand")) or any(k in problem for k in ("growth", "customer")):
        return "Growth Opportunity"
    return None


def derive_ai_task(answers: Answers) -> str | None:
    return _first_match(_solution_text(answers), _AI_TASK_RULES)


def derive_ai_method(answers: Answers) -> str | None:
    combined = f"{_solution_text(answers)} {_lower(answers, 'technical_approach')}"
    return _first_match(combined, _AI_METHOD_RULES)


def derive_ai_output(answers: Answers) -> str | None:
    expected = _text(answers.get("expected_output"))
    if expected:
        return expected
    return _first_match(_solution_text(answers), _AI_OUTPUT_RULES)


def derive_other_details(answers: Answers) -> str | None:
    details = []
    for key, label in _OTHER_DETAIL_SOURCES:
        value = _text(answers.get(key))
        if value:
            details.append(f"{label}: {value}")
    return "; ".join(details) or None


def derive_efficiency_metrics(answers: Answers) -> str | None:
    benefits = _text(answers.get("expected_benefits")) or _text(answers.get("success_metrics"))
    if not benefits:
        return None
    lower = benefits.lower()
    if _PERCENT_RE.search(benefits) or "hour" in lower or "minute" in lower:
        return benefits
    return None


def derive_hybrid_approach(answers: Answers) -> str | None:
    approach = _text(answers.get("approach"))
    if "hybrid" in approach.lower():
        return approach
    return None


# --- フィールド規則 -----------------------------------------------------------


@dataclass(frozen=True)
class FieldRule:
    """1出力フィールドの値の決め方。"""

    name: str
    aliases: tuple[str, ...] = ()
    derive: Callable[[Answers], str | None] | None = None
    ai_source: str | None = None
    placeholder: str = PLACEHOLDER
    normalize: Callable[[str], str | None] | None = None

    def resolve(self, answers: Answers, ai_values: AISources) -> str:
        for key in (self.name, *self.aliases):
            text = _text(answers.get(key))
            if not text:
                continue
            if self.normalize is None or text in TRI_STATE:
                return text
            # 三値フィールドは最初に見つかった記述のみで判定する
            return self.normalize(text) or self.placeholder
        if self.derive is not None:
            derived = self.derive(answers)
            if derived:
                return derived
        if self.ai_source is not None:
            ai_value = ai_values.get(self.ai_source, "").strip()
            if ai_value:
                return ai_value
        return self.placeholder


FIELD_RULES: tuple[FieldRule, ...] = (
    # 識別
    FieldRule(
        "opportunity_name",
        aliases=("solution_name", "idea_name", "ideaName"),
        placeholder="Untitled GenAI Idea",
    ),
    FieldRule(
        "opportunity_type",
        derive=derive_opportunity_type,
        ai_source="classification",
        placeholder="Efficiency Play",
    ),
    FieldRule("owner_sponsor", aliases=("owner", "submitter")),
    # 課題とソリューション
    FieldRule("problem_statement", aliases=("business_problem", "pain_point")),
    FieldRule("current_process_issues", aliases=("problem_details", "current_issues")),
    FieldRule("ai_solution_approach", aliases=("proposed_solution", "solution_description", "idea_description")),
    FieldRule("improvement_description", aliases=("how_ai_helps", "expected_benefits")),
    FieldRule("ai_task", derive=derive_ai_task),
    FieldRule("ai_method", derive=derive_ai_method),
    FieldRule("ai_output", derive=derive_ai_output),
    FieldRule("other_details", derive=derive_other_details, placeholder=NOT_APPLICABLE),
    FieldRule("suggested_approach", ai_source="suggested_approach", placeholder=ANALYSIS_PENDING),
    # ビジネスインパクト
    FieldRule("core_kpis", aliases=("success_metrics",)),
    FieldRule("efficiency_metrics", derive=derive_efficiency_metrics),
    FieldRule("suggested_kpis_approach", ai_source="suggested_kpis_approach", placeholder=ANALYSIS_PENDING),
    # 実現可能性
    FieldRule("can_we_execute", aliases=("technical_feasibility",), normalize=normalize_can_execute),
    FieldRule("can_we_execute_rationale", aliases=("technical_feasibility",)),
    FieldRule("data_availability", aliases=("data_sources",), normalize=normalize_data_availability),
    FieldRule("data_availability_rationale", aliases=("data_sources",)),
    FieldRule(
        "integration_capability",
        aliases=("systems_integration", "integration_requirements"),
        normalize=normalize_integration_capability,
    ),
    FieldRule("integration_capability_rationale", aliases=("systems_integration", "integration_requirements")),
    # Build/Buy
    FieldRule("overall_approach", aliases=("approach",)),
    FieldRule("approach_rationale", aliases=("approach_details",)),
    FieldRule("hybrid_approach", derive=derive_hybrid_approach, placeholder=NOT_APPLICABLE),
    FieldRule(
        "suggested_build_buy_approach", ai_source="suggested_build_buy_approach", placeholder=ANALYSIS_PENDING
    ),
    # 投資
    FieldRule("investment_people", aliases=("team_size", "resources_needed")),
    FieldRule("investment_cost", aliases=("budget",)),
    FieldRule("investment_timeline", aliases=("estimated_timeline", "timeline")),
    FieldRule(
        "suggested_investment_approach", ai_source="suggested_investment_approach", placeholder=ANALYSIS_PENDING
    ),
    # リスク
    FieldRule("risks_list", aliases=("risks", "potential_risks")),
    FieldRule("mitigation_strategies", aliases=("mitigation",)),
)


def _canonical_json(value: Any) -> str:
    return json.dumps(value, sort_keys=True, ensure_ascii=False, separators=(",", ":"))


def opportunity_id(answers: Answers, generated_at: datetime | None = None) -> str:
    """回答内容から決定的な案件IDを作る。"""
    explicit = _text(answers.get("opportunity_id"))
    if explicit:
        return explicit
    digest = hashlib.sha1(_canonical_json(dict(answers)).encode("utf-8")).hexdigest()[:8].upper()
    if generated_at is None:
        return f"OPP-{digest}"
    return f"OPP-{generated_at.year}-{digest}"


def _ai_values(analysis: Analysis | None, recommendations: Recommendations | None) -> dict[str, str]:
    values: dict[str, str] = {}
    # フォールバックの既定分析はAI由来の値として扱わない
    if analysis is not None and not analysis.fallback:
        values["classification"] = analysis.classification
    if recommendations is not None:
        values.update(recommendations.model_dump())
    return values


def project(
    answers: Answers,
    analysis: Analysis | None = None,
    recommendations: Recommendations | None = None,
    *,
    history: Sequence[ChatTurn] | None = None,
    similarity_scores: Mapping[str, float] | None = None,
    generated_at: datetime | None = None,
) -> OutputRecord:
    """回答マップ（と任意のAI由来データ）から出力レコードを生成する。

    Args:
        answers: 質問IDまたは自由形式キーから回答値へのマップ。
        analysis: 完了時の会話分析。fallback=True の場合は無視する。
        recommendations: 完了時のAI推奨。
        history: conversation_history に書き出す会話履歴。
        similarity_scores: 類似案件スコア。
        generated_at: 提出日時。None の場合、日付フィールドはプレースホルダー。

    Returns:
        全フィールドが空でない出力レコード。
    """
    ai_values = _ai_values(analysis, recommendations)
    fields: dict[str, str] = {rule.name: rule.resolve(answers, ai_values) for rule in FIELD_RULES}

    timestamp = generated_at.isoformat() if generated_at is not None else PLACEHOLDER
    decision_log_ids = answers.get("decision_log_ids", [])
    if not isinstance(decision_log_ids, list):
        decision_log_ids = [decision_log_ids]

    fields.update(
        opportunity_id=opportunity_id(answers, generated_at),
        submission_date=_text(answers.get("submission_date")) or timestamp,
        submission_status=_text(answers.get("submission_status")) or "Submitted",
        similarity_scores=_canonical_json(dict(similarity_scores or {})),
        conversation_history=_canonical_json([turn.model_dump() for turn in history or ()]),
        decision_log_ids=_canonical_json(decision_log_ids),
        form_version=FORM_VERSION,
        last_modified=timestamp,
    )
    return OutputRecord.model_validate(fields)
