"""AI協調者（質問生成・会話分析・推奨生成）とやり取りするデータモデル。"""

from pydantic import BaseModel, Field, ValidationInfo, field_validator

from ideaflow.models.question import AnswerType

DEFAULT_SUGGESTED_APPROACH = (
    "Conduct technical discovery to identify optimal AI approach based on data characteristics and infrastructure"
)
DEFAULT_SUGGESTED_KPIS_APPROACH = (
    "Define baseline metrics before implementation, track operational efficiency and business impact KPIs"
)
DEFAULT_SUGGESTED_BUILD_BUY_APPROACH = (
    "Evaluate build vs buy based on competitive differentiation, internal capabilities, and time to market"
)
DEFAULT_SUGGESTED_INVESTMENT_APPROACH = (
    "Start with 2-month POC to validate feasibility, then 3-month pilot, followed by phased production rollout"
)

_RECOMMENDATION_DEFAULTS = {
    "suggested_approach": DEFAULT_SUGGESTED_APPROACH,
    "suggested_kpis_approach": DEFAULT_SUGGESTED_KPIS_APPROACH,
    "suggested_build_buy_approach": DEFAULT_SUGGESTED_BUILD_BUY_APPROACH,
    "suggested_investment_approach": DEFAULT_SUGGESTED_INVESTMENT_APPROACH,
}


class GeneratedQuestion(BaseModel):
    """AIが提案した次の質問。"""

    id: str = Field(min_length=1)
    text: str = Field(min_length=1)
    required: bool = True
    min_length: int | None = Field(default=None, ge=1)
    answer_type: AnswerType = "text"
    help_text: str | None = None

    @field_validator("id", "text")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be blank")
        return value.strip()


class Analysis(BaseModel):
    """インタビュー完了時の会話分析結果。"""

    summary: str
    gaps: list[str] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)
    classification: str
    readiness: int = Field(ge=0, le=100)
    # AI呼び出し失敗時の既定値かどうか
    fallback: bool = False

    @classmethod
    def default(cls) -> "Analysis":
        return cls(
            summary="GenAI idea for improving operational efficiency",
            gaps=["Technical details needed"],
            recommendations=["Define specific use cases"],
            classification="Simple GenAI",
            readiness=50,
            fallback=True,
        )


class Recommendations(BaseModel):
    """出力レコードの suggested_* フィールドに入るAI推奨。

    空の項目は定型文で補完される。
    """

    suggested_approach: str = DEFAULT_SUGGESTED_APPROACH
    suggested_kpis_approach: str = DEFAULT_SUGGESTED_KPIS_APPROACH
    suggested_build_buy_approach: str = DEFAULT_SUGGESTED_BUILD_BUY_APPROACH
    suggested_investment_approach: str = DEFAULT_SUGGESTED_INVESTMENT_APPROACH

    @field_validator(
        "suggested_approach",
        "suggested_kpis_approach",
        "suggested_build_buy_approach",
        "suggested_investment_approach",
        mode="before",
    )
    @classmethod
    def _fill_blank(cls, value: object, info: ValidationInfo) -> object:
        if value is None or (isinstance(value, str) and not value.strip()):
            return _RECOMMENDATION_DEFAULTS[info.field_name]
        return value
