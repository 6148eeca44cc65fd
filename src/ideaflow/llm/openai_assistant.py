"""OpenAI互換APIを用いたAI協調者の実装。"""

import json
import logging
from typing import Any

from openai import AsyncOpenAI, OpenAIError
from pydantic import ValidationError

from ideaflow.models.analysis import Analysis, GeneratedQuestion, Recommendations
from ideaflow.models.errors import UpstreamUnavailableError
from ideaflow.models.question import AnswerMap, QuestionFlow
from ideaflow.models.session import ChatTurn

logger = logging.getLogger(__name__)

_INTERVIEWER_SYSTEM_PROMPT = (
    "You are an expert AI consultant interviewing an employee about a GenAI idea. "
    "Ask one clear, specific question at a time to gather the information still missing. "
    "Return only valid JSON."
)

_ANALYST_SYSTEM_PROMPT = (
    "You are a senior AI architect and risk assessor. Evaluate GenAI proposals for technical "
    "feasibility, business value, compliance readiness and implementation risks. Return only valid JSON."
)

_ADVISOR_SYSTEM_PROMPT = (
    "You are an expert AI strategy consultant. Provide specific, actionable recommendations "
    "based on the opportunity details. Return only valid JSON."
)

CLASSIFICATIONS = ("Simple GenAI", "GenAI with Tools", "Agentic AI", "Multi-Agent System")


def _format_answers(answers: AnswerMap) -> str:
    return json.dumps(answers, indent=2, ensure_ascii=False, sort_keys=True)


def _format_history(history: list[ChatTurn]) -> str:
    return "\n".join(f"{turn.role.upper()}: {turn.content}" for turn in history)


def _first(answers: AnswerMap, *keys: str) -> str:
    for key in keys:
        value = answers.get(key)
        if value:
            return ", ".join(value) if isinstance(value, list) else str(value)
    return "N/A"


class OpenAIAssistant:
    """質問生成・会話分析・推奨生成をOpenAI Chat Completions APIで行う。

    base_url を指定すればOllama等のOpenAI互換サーバーでも動作する。
    どの失敗も UpstreamUnavailableError として呼び出し側に伝え、
    リトライやフォールバックは呼び出し側に任せる。
    """

    def __init__(self, client: AsyncOpenAI, model: str, flow: QuestionFlow) -> None:
        self._client = client
        self._model = model
        self._flow = flow

    async def _complete_json(
        self, operation: str, system_prompt: str, user_prompt: str, **kwargs: Any
    ) -> dict[str, Any]:
        try:
            response = await self._client.chat.completions.create(
                model=self._model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
                response_format={"type": "json_object"},
                **kwargs,
            )
        except OpenAIError as e:
            raise UpstreamUnavailableError(operation, str(e)) from e

        if not response.choices or not response.choices[0].message.content:
            raise UpstreamUnavailableError(operation, "empty response")
        content = response.choices[0].message.content
        try:
            data = json.loads(content)
        except json.JSONDecodeError as e:
            raise UpstreamUnavailableError(operation, f"invalid JSON: {e}") from e
        if not isinstance(data, dict):
            raise UpstreamUnavailableError(operation, "response is not a JSON object")
        return data

    async def generate_next_question(
        self, answers: AnswerMap, history: list[ChatTurn]
    ) -> GeneratedQuestion | None:
        remaining = [q for q in self._flow.applicable(answers) if q.id not in answers]
        catalogue = "\n".join(
            f"- {q.id} (step {q.step}: {q.step_name}, {q.answer_type}): {q.prompt}" for q in remaining
        )
        prompt = (
            "Based on the following responses about a GenAI idea:\n\n"
            f"{_format_answers(answers)}\n\n"
            "Recent conversation:\n"
            f"{_format_history(history)}\n\n"
            "Questions that still need an answer:\n"
            f"{catalogue or '(none)'}\n\n"
            "Pick the most valuable next question. Prefer one of the listed questions and keep its id, "
            "rephrasing the text to fit the conversation. If nothing important is missing, set complete to true.\n\n"
            'Return JSON: {"complete": false, "question": {"id": "...", "text": "...", '
            '"answer_type": "text|boolean|multiselect", "required": true, "min_length": 10, "help_text": "..."}}'
        )
        data = await self._complete_json(
            "generate_next_question", _INTERVIEWER_SYSTEM_PROMPT, prompt, temperature=0.3
        )
        if data.get("complete") or not data.get("question"):
            return None
        try:
            return GeneratedQuestion.model_validate(data["question"])
        except ValidationError as e:
            raise UpstreamUnavailableError("generate_next_question", f"malformed question: {e}") from e

    async def analyze_conversation(self, answers: AnswerMap, history: list[ChatTurn]) -> Analysis | None:
        prompt = (
            "<user_responses>\n"
            f"{_format_answers(answers)}\n"
            "</user_responses>\n\n"
            "<conversation_history>\n"
            f"{_format_history(history)}\n"
            "</conversation_history>\n\n"
            "Assess business value, technical feasibility, compliance, security, resources and risks.\n"
            "Return JSON with exactly these fields:\n"
            "1. summary: executive summary (2-3 sentences)\n"
            "2. gaps: array of missing critical information\n"
            "3. recommendations: array of actionable improvement suggestions\n"
            f"4. classification: one of {list(CLASSIFICATIONS)}\n"
            "5. readiness: integer 0-100 for proposal completeness and viability"
        )
        data = await self._complete_json("analyze_conversation", _ANALYST_SYSTEM_PROMPT, prompt)
        try:
            return Analysis.model_validate({**data, "fallback": False})
        except ValidationError as e:
            raise UpstreamUnavailableError("analyze_conversation", f"malformed analysis: {e}") from e

    async def generate_recommendations(self, answers: AnswerMap) -> Recommendations:
        prompt = (
            "OPPORTUNITY DETAILS:\n"
            f"- Name: {_first(answers, 'solution_name', 'idea_name')}\n"
            f"- Problem: {_first(answers, 'problem_statement', 'business_problem')}\n"
            f"- Solution: {_first(answers, 'ai_solution_approach', 'proposed_solution')}\n"
            f"- Users: {_first(answers, 'target_users')}\n"
            f"- Impact: {_first(answers, 'core_kpis', 'expected_benefits')}\n"
            f"- Data: {_first(answers, 'data_sources')}\n"
            f"- Feasibility: {_first(answers, 'technical_feasibility')}\n"
            f"- Timeline: {_first(answers, 'investment_timeline')}\n"
            f"- Risks: {_first(answers, 'risks_list', 'potential_risks', 'risks')}\n\n"
            "Provide four recommendations of 1-2 sentences each:\n"
            "1. suggested_approach: specific AI technologies or methodologies\n"
            "2. suggested_kpis_approach: measurable, business-aligned KPIs\n"
            "3. suggested_build_buy_approach: Build, Buy, Partner or Hybrid with rationale\n"
            "4. suggested_investment_approach: phasing (POC, Pilot, Scale), team and timeline\n\n"
            'Return JSON: {"suggested_approach": "...", "suggested_kpis_approach": "...", '
            '"suggested_build_buy_approach": "...", "suggested_investment_approach": "..."}'
        )
        data = await self._complete_json(
            "generate_recommendations", _ADVISOR_SYSTEM_PROMPT, prompt, temperature=0.4, max_tokens=800
        )
        try:
            return Recommendations.model_validate(data)
        except ValidationError as e:
            raise UpstreamUnavailableError("generate_recommendations", f"malformed recommendations: {e}") from e
