# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""MCP Server Protocol Layer for Designloom.

This module implements the MCP protocol layer with ZERO business logic.
Every tool delegates to DesignLoomService and returns its result dict.
"""

import argparse
import logging
from pathlib import Path
from typing import Any, Dict, Optional

from mcp.server.fastmcp import Context, FastMCP
from mcp.server.session import ServerSession

from designloom.config import Config
from designloom.logging_setup import setup_logging
from designloom.service import DesignLoomService

logger = logging.getLogger(__name__)

SERVER_NAME = "designloom"


class DesignLoomMCPServer:
    """MCP Protocol Layer for Designloom.

    Responsibilities:
    - Initialize the FastMCP server and register tools
    - Translate tool invocations to service calls
    - Return service results as tool results

    Design Constraint: This layer contains ZERO business logic.
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        service: Optional[DesignLoomService] = None,
        data_path: Optional[Path] = None,
    ):
        """Initialize MCP server.

        Args:
            config: Configuration object. If None, loads from default location.
            service: Service layer instance. If None, creates one on the data path.
            data_path: Design documents directory, overriding the configured one.
        """
        if config is None:
            config = Config()
        self.config = config

        if service is None:
            service = DesignLoomService(config=config, data_path=data_path)
        self.service = service

        self.mcp = FastMCP(name=SERVER_NAME)
        self._register_tools()

        logger.info("DesignLoomMCPServer initialized")

    def _register_tools(self) -> None:
        """Register MCP tools with the server."""

        @self.mcp.tool()
        async def design_list(
            entity_type: str,
            ctx: Context[ServerSession, None],
            filters: Optional[Dict[str, Any]] = None,
        ) -> Dict[str, Any]:
            """List design entities of one type.

            Args:
                entity_type: workflow, capability, persona, component, tokens, view,
                    interaction or test-result
                filters: Field filters, e.g. {"category": "analysis"}. A filter on a
                    list field matches entities whose list contains the value.
            """
            await ctx.info(f"Listing {entity_type}")
            return self.service.list(entity_type, filters).to_dict()

        @self.mcp.tool()
        async def design_get(
            entity_type: str,
            id: str,
            ctx: Context[ServerSession, None],
        ) -> Dict[str, Any]:
            """Get one design entity with its references resolved to names."""
            await ctx.info(f"Getting {entity_type} '{id}'")
            return self.service.get(entity_type, id).to_dict()

        @self.mcp.tool()
        async def design_create(
            entity_type: str,
            data: Dict[str, Any],
            ctx: Context[ServerSession, None],
        ) -> Dict[str, Any]:
            """Create a design entity.

            Every referenced entity must already exist. The reverse side of each
            relationship (e.g. a capability's used_by_workflows) is updated
            automatically.
            """
            await ctx.info(f"Creating {entity_type} '{data.get('id')}'")
            return self.service.create(entity_type, data).to_dict()

        @self.mcp.tool()
        async def design_update(
            entity_type: str,
            id: str,
            data: Dict[str, Any],
            ctx: Context[ServerSession, None],
        ) -> Dict[str, Any]:
            """Update fields of a design entity. Only the supplied fields change."""
            await ctx.info(f"Updating {entity_type} '{id}'")
            return self.service.update(entity_type, id, data).to_dict()

        @self.mcp.tool()
        async def design_delete(
            entity_type: str,
            id: str,
            ctx: Context[ServerSession, None],
            force: bool = False,
        ) -> Dict[str, Any]:
            """Delete a design entity.

            Refused while other entities reference it, unless force is true, in
            which case every reference is removed as well.
            """
            await ctx.info(f"Deleting {entity_type} '{id}' (force={force})")
            return self.service.delete(entity_type, id, force=force).to_dict()

        @self.mcp.tool()
        async def design_link(
            from_type: str,
            from_id: str,
            to_type: str,
            to_id: str,
            relationship: str,
            ctx: Context[ServerSession, None],
            action: str = "link",
        ) -> Dict[str, Any]:
            """Link or unlink two entities.

            Relationships: workflow-requires->capability, workflow-uses->persona,
            workflow-suggests->component, component-implements->capability,
            component-depends->component.

            Args:
                action: "link" (default) or "unlink"
            """
            await ctx.info(f"{action} {from_type} '{from_id}' -[{relationship}]-> {to_id}")
            if action == "unlink":
                result = self.service.unlink(from_type, from_id, to_type, to_id, relationship)
            else:
                result = self.service.link(from_type, from_id, to_type, to_id, relationship)
            return result.to_dict()

        @self.mcp.tool()
        async def design_validate(
            ctx: Context[ServerSession, None],
            check: str = "all",
            entity_type: Optional[str] = None,
        ) -> Dict[str, Any]:
            """Check the design graph.

            Args:
                check: "all" (integrity plus warnings), "orphans" or "gaps"
                entity_type: Restrict the orphan check to one type
            """
            await ctx.info(f"Validating design documents: {check}")
            if check == "orphans":
                return self.service.find_orphans(entity_type).to_dict()
            if check == "gaps":
                return self.service.find_gaps().to_dict()
            return self.service.validate().to_dict()

        @self.mcp.tool()
        async def design_analyze(
            ctx: Context[ServerSession, None],
            report: str = "coverage",
            focus: str = "capability",
            limit: Optional[int] = None,
        ) -> Dict[str, Any]:
            """Analyze the design graph.

            Args:
                report: "coverage", "priority" or "test-coverage"
                focus: For priority: "capability" or "workflow"
                limit: For priority: maximum recommendations
            """
            await ctx.info(f"Running {report} analysis")
            if report == "priority":
                return self.service.suggest_priority(focus, limit).to_dict()
            if report == "test-coverage":
                return self.service.test_coverage().to_dict()
            return self.service.coverage_report().to_dict()

        @self.mcp.tool()
        async def design_relations(
            entity_type: str,
            id: str,
            ctx: Context[ServerSession, None],
            direction: str = "dependents",
        ) -> Dict[str, Any]:
            """List what an entity references ("dependencies") or what references it
            ("dependents")."""
            await ctx.info(f"Getting {direction} of {entity_type} '{id}'")
            if direction == "dependencies":
                return self.service.dependencies_of(entity_type, id).to_dict()
            return self.service.dependents_of(entity_type, id).to_dict()

        @self.mcp.tool()
        async def design_refresh(ctx: Context[ServerSession, None]) -> Dict[str, Any]:
            """Reload every document from disk, picking up edits made outside the server."""
            await ctx.info("Refreshing design documents from disk")
            return self.service.refresh().to_dict()

        logger.info(
            "MCP tools registered: design_list, design_get, design_create, design_update, "
            "design_delete, design_link, design_validate, design_analyze, design_relations, "
            "design_refresh"
        )

    def run(self, transport: str = "stdio") -> None:
        """Run the MCP server.

        Args:
            transport: "stdio" (default), "streamable-http" or "sse".
        """
        logger.info(f"Starting MCP server with {transport} transport")
        self.mcp.run(transport=transport)  # type: ignore[arg-type]


def parse_args() -> argparse.Namespace:
    """Parse command-line arguments.

    Returns:
        Parsed arguments namespace.
    """
    parser = argparse.ArgumentParser(
        description="Designloom MCP Server",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--data-path",
        type=Path,
        default=None,
        help="Directory holding the design documents. Default: data_path from config",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Configuration file. Default: ./.designloom.yml",
    )
    parser.add_argument(
        "--transport",
        type=str,
        choices=["stdio", "streamable-http", "sse"],
        default="stdio",
        help="Transport type for MCP server. Default: stdio",
    )
    return parser.parse_args()


def main() -> None:
    """Main entry point for MCP server."""
    args = parse_args()

    config = Config(config_path=args.config)
    setup_logging(log_dir=config.log_dir, log_level=config.log_level)

    server = DesignLoomMCPServer(config=config, data_path=args.data_path)
    logger.info(f"Starting Designloom MCP server (transport={args.transport})")
    server.run(transport=args.transport)


if __name__ == "__main__":
    main()
