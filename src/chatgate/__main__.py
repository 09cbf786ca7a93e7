"""Application entry point for chatgate."""

import argparse
import asyncio
import signal
import sys
from pathlib import Path

from pydantic import ValidationError

from chatgate.application.services.group_service import GroupService
from chatgate.application.services.routing_config import RoutingConfig
from chatgate.application.services.schedule_evaluator import ScheduleEvaluator
from chatgate.application.services.trigger_router import TriggerRouter
from chatgate.config import (
    ConfigError,
    ConfigFileNotFoundError,
    ConfigStore,
    load_config,
)
from chatgate.infrastructure import BackgroundTasks
from chatgate.infrastructure.llm import StrandsLLMProvider
from chatgate.infrastructure.logging import get_logger, setup_logging
from chatgate.infrastructure.persistence import (
    Database,
    InMemoryMessageRepository,
    SqliteScheduleRepository,
)
from chatgate.infrastructure.tracing import setup_tracing
from chatgate.infrastructure.transport import HttpBridgeTransport
from chatgate.infrastructure.webhook import AiohttpWebhookClient
from chatgate.presentation.http.server import HTTPServer

# Shutdown timeout in seconds
SHUTDOWN_TIMEOUT = 30


def parse_args(args: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments.

    Args:
        args: Command line arguments. If None, uses sys.argv.

    Returns:
        Parsed arguments namespace.
    """
    parser = argparse.ArgumentParser(
        description="chatgate - Group chat gateway to LLMs and webhooks"
    )
    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        default=Path("config.yaml"),
        help="Path to configuration file (default: config.yaml)",
    )
    return parser.parse_args(args)


async def main_async(
    config_path: Path,
    shutdown_timeout: float = SHUTDOWN_TIMEOUT,
) -> int:
    """Async main function.

    Args:
        config_path: Path to configuration file.
        shutdown_timeout: Maximum time in seconds to wait for graceful shutdown.

    Returns:
        Exit code (0 for success, non-zero for failure).
    """
    # 1. Load configuration
    config = load_config(config_path)
    store = ConfigStore(config_path)

    # 2. Initialize logging
    setup_logging(config.logging)
    logger = get_logger(__name__)
    logger.info("Starting chatgate", config_path=str(config_path))

    # 3. Initialize tracing (if OTEL endpoint is configured)
    if setup_tracing():
        logger.info("Tracing enabled")

    # 4. Initialize components
    database = Database(config.database.url)
    await database.initialize()

    tasks = BackgroundTasks(logger=get_logger("background"))
    transport = HttpBridgeTransport(
        config=config.bridge, tasks=tasks, logger=get_logger("transport")
    )
    webhook_client = AiohttpWebhookClient(default_timeout=config.scheduler.webhook_timeout)
    groups = GroupService(config.chat.allowed_groups, store, get_logger("groups"))
    routing = RoutingConfig(
        config.chat.trigger_words, config.webhooks, store, get_logger("routing")
    )
    router = TriggerRouter(
        groups=groups,
        routing=routing,
        messages=InMemoryMessageRepository(window=config.chat.context_messages),
        transport=transport,
        webhook_client=webhook_client,
        llm=StrandsLLMProvider(config.llm, get_logger("llm")),
        logger=get_logger("router"),
    )
    transport.on_message(router.handle_message)

    evaluator: ScheduleEvaluator | None = None
    if config.scheduler.enabled:
        evaluator = ScheduleEvaluator(
            repository=SqliteScheduleRepository(database),
            webhook_client=webhook_client,
            transport=transport,
            tasks=tasks,
            logger=get_logger("scheduler"),
            timezone_name=config.scheduler.timezone,
        )

    http_server = HTTPServer(
        config=config.server,
        transport=transport,
        groups=groups,
        routing=routing,
        evaluator=evaluator,
        logger=get_logger("http_server"),
    )

    # 5. Setup shutdown handling
    shutdown_event = asyncio.Event()

    def signal_handler(sig: signal.Signals) -> None:
        logger.info("Received signal, initiating shutdown", signal=sig.name)
        shutdown_event.set()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, signal_handler, sig)

    try:
        # 6. Start transport, scheduler and HTTP server
        await transport.start()
        if evaluator is not None:
            await evaluator.start()
        await http_server.start()
        logger.info("chatgate started successfully")

        # 7. Serve until a shutdown signal arrives
        await shutdown_event.wait()

    except asyncio.CancelledError:
        logger.info("Main loop cancelled")

    finally:
        # 8. Shutdown
        logger.info("Shutting down")
        try:
            await asyncio.wait_for(
                _shutdown(http_server, evaluator, tasks, transport, webhook_client, database),
                timeout=shutdown_timeout,
            )
            logger.info("chatgate stopped")
        except TimeoutError:
            logger.warning(
                "Shutdown timed out, forcing termination",
                timeout_seconds=shutdown_timeout,
            )

    return 0


async def _shutdown(
    http_server: HTTPServer,
    evaluator: ScheduleEvaluator | None,
    tasks: BackgroundTasks,
    transport: HttpBridgeTransport,
    webhook_client: AiohttpWebhookClient,
    database: Database,
) -> None:
    # Stop intake before cancelling in-flight work.
    await http_server.stop()
    if evaluator is not None:
        await evaluator.stop()
    await tasks.shutdown(timeout=5)
    await transport.stop()
    await webhook_client.close()
    await database.close()


def main() -> None:
    """Main entry point."""
    args = parse_args()
    config_path = args.config

    try:
        exit_code = asyncio.run(main_async(config_path))
        sys.exit(exit_code)
    except ConfigFileNotFoundError:
        print(f"Error: {config_path} not found", file=sys.stderr)
        sys.exit(1)
    except ConfigError as e:
        print(f"Error: Configuration error: {e}", file=sys.stderr)
        sys.exit(1)
    except ValidationError as e:
        print(f"Error: Configuration validation error: {e}", file=sys.stderr)
        sys.exit(1)
    except KeyboardInterrupt:
        sys.exit(0)


if __name__ == "__main__":
    main()
