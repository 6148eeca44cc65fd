"""インタビュー関連のMCPリソース定義。"""

import yaml
from fastmcp import FastMCP

from ideaflow.models.output import FORM_VERSION, OutputRecord
from ideaflow.models.question import QuestionFlow
from ideaflow.services.projection import FIELD_RULES


def register_interview_resources(mcp: FastMCP, flow: QuestionFlow) -> None:
    """インタビュー関連のMCPリソースを登録する。"""

    @mcp.resource("ideaflow://interview/questions")
    async def interview_questions() -> str:
        """質問フロー定義を取得する。

        ステップ構成、質問文、必須/任意、最小文字数、依存関係を返します。
        """
        data = {"questions": [q.model_dump(exclude_none=True) for q in flow.questions]}
        return yaml.dump(data, allow_unicode=True, default_flow_style=False, sort_keys=False)

    @mcp.resource("ideaflow://output/schema")
    async def output_schema() -> str:
        """出力レコードのフィールド一覧と各フィールドの値の決め方。"""
        rules = {rule.name: rule for rule in FIELD_RULES}
        fields = []
        for name in OutputRecord.field_names():
            rule = rules.get(name)
            entry: dict[str, object] = {"name": name}
            if rule is not None:
                entry["aliases"] = list(rule.aliases)
                entry["placeholder"] = rule.placeholder
                if rule.ai_source is not None:
                    entry["ai_source"] = rule.ai_source
            fields.append(entry)
        data = {"form_version": FORM_VERSION, "fields": fields}
        return yaml.dump(data, allow_unicode=True, default_flow_style=False, sort_keys=False)
