"""固定スキーマの出力レコード（CSVエクスポート単位）。"""

import csv
import io
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field

FORM_VERSION = "2.0"
PLACEHOLDER = "TBD"

NonEmptyStr = Annotated[str, Field(min_length=1)]


class OutputRecord(BaseModel):
    """完了したセッションから導出される39フィールドのフラットなレコード。

    全フィールドが空でない値を持つことをモデルで保証する。
    """

    model_config = ConfigDict(frozen=True)

    # 識別
    opportunity_id: NonEmptyStr
    opportunity_name: NonEmptyStr
    opportunity_type: NonEmptyStr
    owner_sponsor: NonEmptyStr

    # 課題とソリューション
    problem_statement: NonEmptyStr
    current_process_issues: NonEmptyStr
    ai_solution_approach: NonEmptyStr
    improvement_description: NonEmptyStr
    ai_task: NonEmptyStr
    ai_method: NonEmptyStr
    ai_output: NonEmptyStr
    other_details: NonEmptyStr
    suggested_approach: NonEmptyStr

    # ビジネスインパクト
    core_kpis: NonEmptyStr
    efficiency_metrics: NonEmptyStr
    suggested_kpis_approach: NonEmptyStr

    # 実現可能性
    can_we_execute: NonEmptyStr
    can_we_execute_rationale: NonEmptyStr
    data_availability: NonEmptyStr
    data_availability_rationale: NonEmptyStr
    integration_capability: NonEmptyStr
    integration_capability_rationale: NonEmptyStr

    # Build/Buy
    overall_approach: NonEmptyStr
    approach_rationale: NonEmptyStr
    hybrid_approach: NonEmptyStr
    suggested_build_buy_approach: NonEmptyStr

    # 投資
    investment_people: NonEmptyStr
    investment_cost: NonEmptyStr
    investment_timeline: NonEmptyStr
    suggested_investment_approach: NonEmptyStr

    # リスク
    risks_list: NonEmptyStr
    mitigation_strategies: NonEmptyStr

    # メタデータ
    submission_date: NonEmptyStr
    submission_status: NonEmptyStr
    similarity_scores: NonEmptyStr
    conversation_history: NonEmptyStr
    decision_log_ids: NonEmptyStr
    form_version: NonEmptyStr
    last_modified: NonEmptyStr

    @classmethod
    def field_names(cls) -> list[str]:
        return list(cls.model_fields)

    @classmethod
    def csv_header(cls) -> str:
        return _write_csv_line(cls.field_names())

    def to_csv_row(self) -> str:
        """全フィールドをクォートしたCSV行（改行なし）を返す。"""
        return _write_csv_line([getattr(self, name) for name in self.field_names()])

    def missing_critical_fields(self) -> list[str]:
        """プレースホルダーのままの重要フィールド名を返す。"""
        critical = (
            "opportunity_id",
            "opportunity_name",
            "opportunity_type",
            "submission_date",
            "submission_status",
            "form_version",
        )
        return [name for name in critical if getattr(self, name) == PLACEHOLDER]


def _write_csv_line(values: list[str]) -> str:
    buf = io.StringIO()
    writer = csv.writer(buf, quoting=csv.QUOTE_ALL, lineterminator="")
    writer.writerow(values)
    return buf.getvalue()
