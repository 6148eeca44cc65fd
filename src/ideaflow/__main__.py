"""ideaflow MCPサーバーのコマンドラインエントリポイント。"""

if __name__ == "__main__":
    import asyncio
    import logging

    from ideaflow.config import ServerConfig
    from ideaflow.server import serve

    config = ServerConfig()
    logging.basicConfig(
        level=config.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    asyncio.run(serve(config))
