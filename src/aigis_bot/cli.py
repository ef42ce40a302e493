"""
Command-line interface for Aigis.
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

import structlog
import uvicorn

from .config import AKASH_MODELS, get_settings

logger = structlog.get_logger()


def configure_logging(level: str = "INFO") -> None:
    """Set up structlog on top of stdlib logging."""
    logging.basicConfig(format="%(message)s", stream=sys.stderr, level=level.upper())

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer(colors=True),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def main() -> None:
    """Main entry point for the CLI."""
    parser = argparse.ArgumentParser(
        prog="aigis",
        description="Aigis - a conversational agent for Bluesky",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    serve_parser = subparsers.add_parser("serve", help="Start the bot and its health/metrics server")
    serve_parser.add_argument("--host", default=None, help="Host to bind to")
    serve_parser.add_argument("--port", type=int, default=None, help="Port to bind to")

    chat_parser = subparsers.add_parser("chat", help="Chat with the model in the terminal")
    chat_parser.add_argument("--model", default=None, help="Model id to use")
    chat_parser.add_argument("--no-tools", action="store_true", help="Disable tool use")

    config_parser = subparsers.add_parser("config", help="Show configuration")
    config_parser.add_argument("--check", action="store_true", help="Check configuration validity")

    subparsers.add_parser("init", help="Create a starter .env and prompt file")

    args = parser.parse_args()

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    settings = get_settings()
    configure_logging("DEBUG" if settings.debug else settings.log_level)

    if args.command == "serve":
        run_server(args.host or settings.host, args.port or settings.port)
    elif args.command == "chat":
        asyncio.run(run_chat(args.model, args.no_tools))
    elif args.command == "config":
        ok = show_config(args.check)
        if not ok:
            sys.exit(1)
    elif args.command == "init":
        init_bot()
    else:
        parser.print_help()


def run_server(host: str, port: int) -> None:
    """Run the bot under uvicorn."""
    logger.info("Starting Aigis", host=host, port=port)

    uvicorn.run(
        "aigis_bot.api.app:create_app",
        host=host,
        port=port,
        factory=True,
        log_level="info",
    )


async def run_chat(model: str | None = None, no_tools: bool = False) -> None:
    """Interactive chat through the same tool loop the bot uses.

    Nothing is posted and nothing is written to memory.
    """
    from .agent.service import create_generation_loop
    from .llm import LLMMessage
    from .tools import ToolRegistry

    settings = get_settings()
    if model:
        settings = settings.model_copy(update={"llm_model": model})

    loop = create_generation_loop(settings, registry=ToolRegistry() if no_tools else None)
    history: list[LLMMessage] = []

    print(f"Chatting with {settings.llm_model}. Ctrl-D or /quit to exit.\n")

    while True:
        try:
            line = await asyncio.to_thread(input, "> ")
        except EOFError:
            print()
            break

        line = line.strip()
        if not line:
            continue
        if line in ("/quit", "/exit"):
            break

        history.append(LLMMessage.user(line))
        result = await loop.run(history, on_text=lambda chunk: print(chunk, end="", flush=True))
        print("\n")

        if result.aborted:
            print("(stopped: the model kept repeating the same tool call)\n")

        history.append(LLMMessage.assistant(result.reply or ""))


def show_config(check: bool) -> bool:
    """Show current configuration. Returns False if the check found errors."""
    settings = get_settings()

    def mask(value: str) -> str:
        if not value:
            return "(not set)"
        return value[:4] + "..." + value[-4:] if len(value) > 10 else "****"

    llm_config = settings.get_llm_config()

    print("\n=== Aigis Configuration ===\n")

    print("Server:")
    print(f"  Host: {settings.host}")
    print(f"  Port: {settings.port}")
    print(f"  Debug: {settings.debug}")

    print("\nBluesky:")
    print(f"  User: {settings.atp_user or '(not set)'}")
    print(f"  Password: {mask(settings.atp_password)}")
    print(f"  Service: {settings.atp_service}")
    print(f"  Jetstream: {settings.jetstream_url}")
    print(f"  Workers: {settings.worker_count}")
    print(f"  Allowed Users: {settings.allowed_users or '(everyone)'}")

    print("\nLLM:")
    print(f"  Provider: {llm_config.provider}")
    print(f"  Model: {llm_config.model}")
    print(f"  Base URL: {llm_config.base_url or '(default)'}")
    print(f"  API Key: {mask(llm_config.api_key)}")
    print(f"  Prompt File: {settings.prompt_file}")

    print("\nMemory:")
    print(f"  Embedding Model: {settings.embedding_model} ({settings.embedding_dim} dims)")
    print(f"  Embedding Key: {mask(settings.embedding_api_key or settings.openai_api_key)}")
    print(f"  Qdrant: {settings.qdrant_url} / {settings.qdrant_collection}")
    print(f"  Retrieval Top K: {settings.retrieval_top_k}")
    print(f"  Archive Posts: {settings.archive_posts}")

    print("\nTools:")
    print(f"  Calculator: {settings.enable_calculator}")
    print(f"  Web Search: {settings.enable_web_search}")
    print(f"  Website: {settings.enable_website}")
    print(f"  Repeat Limit: {settings.tool_repeat_limit}")

    if not check:
        return True

    print("\n=== Configuration Check ===\n")
    errors, warnings = check_config()

    if errors:
        print("❌ Errors:")
        for e in errors:
            print(f"   - {e}")

    if warnings:
        print("⚠️  Warnings:")
        for w in warnings:
            print(f"   - {w}")

    if not errors and not warnings:
        print("✅ Configuration looks good!")
    elif not errors:
        print("\n✅ Configuration is valid (with warnings)")
    else:
        print("\n❌ Configuration has errors - fix them before starting")

    return not errors


def check_config() -> tuple[list[str], list[str]]:
    """Validate settings; returns (errors, warnings)."""
    settings = get_settings()
    errors = []
    warnings = []

    if not settings.atp_user or not settings.atp_password:
        errors.append("ATP_USER and ATP_PASSWORD are required")

    if not settings.get_llm_config().api_key:
        errors.append(f"No API key for LLM provider '{settings.get_llm_config().provider}'")

    if not (settings.embedding_api_key or settings.openai_api_key):
        errors.append("EMBEDDING_API_KEY or OPENAI_API_KEY is required for memory")

    if settings.llm_model in AKASH_MODELS and settings.llm_provider != "akash":
        warnings.append(f"{settings.llm_model} is served by Akash; LLM_PROVIDER is ignored")

    if not Path(settings.prompt_file).expanduser().exists():
        warnings.append(f"Prompt file {settings.prompt_file} not found - using the built-in persona")

    if not settings.allowed_users_list:
        warnings.append("No ALLOWED_USERS set - anyone who mentions the bot gets a reply")

    return errors, warnings


def init_bot() -> None:
    """Create a starter .env and prompt file."""
    from .agent.prompt import DEFAULT_PERSONA_PROMPT

    env_file = Path(".env")
    prompt_file = Path("prompt.txt")
    data_dir = Path("data")

    data_dir.mkdir(exist_ok=True)

    if not env_file.exists():
        env_content = """# Aigis Configuration

# === REQUIRED ===

# Bluesky account (use an app password)
ATP_USER=
ATP_PASSWORD=

# LLM (DeepSeek-R1-0528 is served by the Akash chat API)
LLM_MODEL=DeepSeek-R1-0528
AKASH_API_KEY=
# LLM_PROVIDER=openai
# OPENAI_API_KEY=
# ANTHROPIC_API_KEY=
# OPENROUTER_API_KEY=

# Embeddings (falls back to OPENAI_API_KEY)
EMBEDDING_API_KEY=

# === OPTIONAL ===

# QDRANT_URL=http://localhost:6333
# QDRANT_COLLECTION=aigis-db
# ALLOWED_USERS=did:plc:abc,did:plc:def
# WORKER_COUNT=3
# ARCHIVE_POSTS=false

# Server
PORT=9000
DEBUG=false
"""
        env_file.write_text(env_content)
        print(f"✅ Created {env_file}")
    else:
        print(f"ℹ️  {env_file} already exists")

    if not prompt_file.exists():
        prompt_file.write_text(DEFAULT_PERSONA_PROMPT)
        print(f"✅ Created {prompt_file}")
    else:
        print(f"ℹ️  {prompt_file} already exists")

    print(f"✅ Created {data_dir}")
    print("\n=== Next Steps ===")
    print("1. Edit .env and add your Bluesky credentials")
    print("2. Add an LLM API key and an embedding API key")
    print("3. Start Qdrant (docker run -p 6333:6333 qdrant/qdrant)")
    print("4. Run: aigis serve")


if __name__ == "__main__":
    main()
