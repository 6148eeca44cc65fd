"""FastMCPベースのMCPサーバーエントリポイント。"""

import logging

import uvicorn
from fastmcp import FastMCP
from openai import AsyncOpenAI
from starlette.middleware import Middleware
from starlette.requests import Request
from starlette.responses import JSONResponse

from ideaflow.config import ServerConfig
from ideaflow.llm.openai_assistant import OpenAIAssistant
from ideaflow.middleware import TokenAuthMiddleware
from ideaflow.models.question import QuestionFlow
from ideaflow.prompts.interview import register_interview_prompts
from ideaflow.resources.interview import register_interview_resources
from ideaflow.services.history import HistoryManager
from ideaflow.services.interview import InterviewService
from ideaflow.services.selector import NextQuestionSelector
from ideaflow.services.sessions import SessionStore
from ideaflow.services.validator import VaguenessPolicy
from ideaflow.storage.service import StorageService
from ideaflow.tools.interview import register_interview_tools

logger = logging.getLogger(__name__)

OLLAMA_BASE_URL = "http://localhost:11434/v1"


def create_assistant(config: ServerConfig, flow: QuestionFlow) -> OpenAIAssistant | None:
    """ai_mode に応じたAI協調者を作成する。static の場合は None。"""
    if config.ai_mode == "static":
        return None
    if config.ai_mode == "ollama":
        client = AsyncOpenAI(base_url=config.openai_base_url or OLLAMA_BASE_URL, api_key="ollama")
    else:
        client = AsyncOpenAI(api_key=config.openai_api_key or None, base_url=config.openai_base_url or None)
    logger.info("Using %s assistant with model %s", config.ai_mode, config.openai_model)
    return OpenAIAssistant(client, config.openai_model, flow)


def create_interview_service(config: ServerConfig) -> InterviewService:
    """設定から質問フロー・ストア・セレクタを組み立てる。"""
    flow = QuestionFlow.from_yaml(config.questions_file)

    # データアクセス層
    storage = StorageService(data_dir=config.data_dir)
    store = SessionStore(
        storage,
        flow,
        history=HistoryManager(config.undo_capacity),
        autosave_interval=config.autosave_interval,
    )

    # AI協調者（未設定なら決定的モードのみ）
    assistant = create_assistant(config, flow)
    selector = NextQuestionSelector(
        flow,
        assistant,
        timeout=config.ai_timeout,
        max_extra_questions=config.max_extra_questions,
    )
    policy = VaguenessPolicy(
        enabled=config.vague_reprompt_enabled,
        terms=tuple(config.vague_terms),
        max_follow_ups=config.max_follow_ups,
    )
    return InterviewService(
        flow,
        store,
        selector,
        analyzer=assistant,
        recommender=assistant,
        vagueness_policy=policy,
        ai_timeout=config.ai_timeout,
        history_window=config.history_window,
    )


def create_server(
    config: ServerConfig | None = None,
    interview_service: InterviewService | None = None,
) -> FastMCP:
    """ideaflow MCPサーバーを作成し、ツール・リソース・プロンプトを登録する。

    Args:
        config: サーバー設定。Noneの場合はデフォルト設定を使用。
        interview_service: 使用するInterviewService。Noneの場合は設定から組み立てる。

    Returns:
        設定済みのFastMCPインスタンス。
    """
    if config is None:
        config = ServerConfig()

    mcp = FastMCP("ideaflow")

    # サービス層
    if interview_service is None:
        interview_service = create_interview_service(config)

    # MCPインターフェース登録
    register_interview_tools(mcp, interview_service, abandon_after_minutes=config.abandon_after_minutes)
    register_interview_resources(mcp, interview_service.flow)
    register_interview_prompts(mcp)

    # ヘルスチェックエンドポイント
    @mcp.custom_route("/health", methods=["GET"])
    async def health_check(request: Request) -> JSONResponse:
        return JSONResponse({"status": "ok"})

    return mcp


async def serve(config: ServerConfig, interview_service: InterviewService | None = None) -> None:
    """streamable-httpでサーバーを起動し、停止時に未保存のセッションを書き出す。"""
    if interview_service is None:
        interview_service = create_interview_service(config)
    mcp = create_server(config, interview_service)
    app = mcp.http_app(
        transport="streamable-http",
        middleware=[Middleware(TokenAuthMiddleware, url_token=config.url_token)],
    )
    server = uvicorn.Server(uvicorn.Config(app, host=config.host, port=config.port))
    try:
        await server.serve()
    finally:
        await interview_service.dispose()
        logger.info("Flushed pending sessions on shutdown")
