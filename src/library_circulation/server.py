"""Library Circulation Server

Exposes the loan lifecycle coordinator over MCP on the stdio transport.

Clients get four tools: create_loan, return_loan, calculate_fine and
find_overdue. Every tool runs the coordinator's atomic units, so stock
counters and loan records never drift apart no matter how many clients
call in at once.
"""

import logging
import signal
import sys
from typing import Any

from fastmcp import FastMCP

from library_circulation.config import get_config
from library_circulation.database import get_db_manager
from library_circulation.tools import all_tools

# stdout carries the stdio transport, so logs go to stderr
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stderr)],
)

logger = logging.getLogger(__name__)

config = get_config()

# =============================================================================
# MCP SERVER INITIALIZATION
# =============================================================================

mcp = FastMCP(
    name=config.server_name,
    instructions=(
        "Library Circulation Server - lends and returns books while keeping stock "
        "counts consistent. Use create_loan to lend a copy to an active member, "
        "return_loan to close a loan and assess late fines, calculate_fine to price "
        "an open loan, and find_overdue to list loans past their due date."
    ),
)

# =============================================================================
# TOOL REGISTRATION
# =============================================================================

for tool in all_tools:
    logger.debug("Registering tool: %s", tool["name"])
    try:
        mcp.tool(
            name=tool["name"],
            description=tool["description"],
        )(tool["handler"])
    except Exception:
        logger.exception("Failed to register tool %s", tool["name"])
        raise

logger.info("Registered %d tools", len(all_tools))

# =============================================================================
# SERVER EXECUTION
# =============================================================================


def run_stdio_server() -> None:
    """Create the schema if needed and serve on stdin/stdout."""
    logger.info("Starting %s v%s on stdio transport", config.server_name, config.server_version)

    if config.is_development:
        logging.getLogger().setLevel(logging.DEBUG)
        logger.debug("Debug mode enabled")
    else:
        logging.getLogger().setLevel(config.log_level)
        logging.getLogger("fastmcp").setLevel(logging.WARNING)

    db_manager = get_db_manager()
    db_manager.init_database()
    if not db_manager.verify_connection():
        logger.error("Database at %s is not reachable", db_manager.database_url)
        sys.exit(1)

    def signal_handler(signum: int, _frame: Any) -> None:
        logger.info("Received signal %s, initiating shutdown...", signum)
        db_manager.close()
        sys.exit(0)

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    try:
        logger.info("MCP Server ready and waiting for connections...")
        mcp.run(transport="stdio")
    except Exception:
        logger.exception("Fatal error in MCP server")
        sys.exit(1)
    finally:
        db_manager.close()


# =============================================================================
# MAIN ENTRY POINT
# =============================================================================


def main() -> None:
    """Entry point for the ``library-circulation`` console script."""
    try:
        logger.info("=" * 60)
        logger.info("Library Circulation Server")
        logger.info("Version: %s", config.server_version)
        logger.info("Transport: %s", config.transport)
        logger.info("Database: %s", config.get_database_url())
        logger.info("=" * 60)

        if config.transport == "stdio":
            run_stdio_server()
        else:
            logger.error("Unsupported transport: %s", config.transport)
            sys.exit(1)

    except KeyboardInterrupt:
        logger.info("Server stopped by user")
    except Exception:
        logger.exception("Failed to start MCP server")
        sys.exit(1)


if __name__ == "__main__":
    main()
