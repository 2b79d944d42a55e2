# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""MCP Server Protocol Layer for APY language intelligence.

This module exposes the editor features as MCP tools with ZERO business
logic. Every tool translates its arguments into a Document and Position and
delegates to LanguageService.
"""

import argparse
import asyncio
import logging
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, TypeVar

from mcp.server.fastmcp import Context, FastMCP
from mcp.server.session import ServerSession

from apy_intel.config import Config
from apy_intel.logging_setup import setup_logging
from apy_intel.service import CancellationToken, Document, LanguageService, Position

logger = logging.getLogger(__name__)

SERVER_NAME = "apy-language-intelligence"

T = TypeVar("T")


class APYLanguageMCPServer:
    """MCP Protocol Layer for APY language intelligence.

    Responsibilities:
    - Initialize MCP server and register tools
    - Build documents from tool arguments (inline text or file on disk)
    - Format service results as JSON-compatible tool results
    - Handle server lifecycle (library watcher, shutdown)
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        service: Optional[LanguageService] = None,
    ):
        """Initialize MCP server.

        Args:
            config: Configuration object. If None, loads from default location.
            service: Service layer instance. If None, creates default service.
        """
        if config is None:
            config = Config()
        self.config = config

        if service is None:
            service = LanguageService(config=config)
        self.service = service

        self.mcp = FastMCP(name=SERVER_NAME)
        self._register_tools()

        logger.info("APYLanguageMCPServer initialized")

    def _document_for(
        self, file_path: str, text: Optional[str], version: Optional[int] = None
    ) -> Document:
        """Document for a tool call.

        A given ``version`` becomes the latest known version of ``file_path``,
        so results still computing for older versions are discarded.

        Raises:
            FileNotFoundError: If ``text`` is omitted and the file can't be read
        """
        if version is not None:
            self.service.update_document(file_path, version)
        document = self.service.read_document(file_path, text, version)
        if document is None:
            raise FileNotFoundError(f"Cannot read document: {file_path}")
        return document

    async def _call(self, operation: Callable[..., T], *args: Any) -> T:
        """Run a service operation in a worker thread with a cancellation token.

        Cancelling the tool call cancels the token, so the operation stops at
        its next checkpoint and returns an empty result.
        """
        token = CancellationToken()
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, lambda: operation(*args, token))
        except asyncio.CancelledError:
            token.cancel()
            raise

    def _register_tools(self) -> None:
        """Register MCP tools with the server.

        Registers:
        - complete: Completion items at a position
        - definition: Declaration location of the symbol at a position
        - hover: Signature of the symbol at a position
        - signature_help: Signature and active parameter of the enclosing call
        - invalidate_library_cache: Drop cached library data
        """

        @self.mcp.tool()
        async def complete(
            file_path: str,
            line: int,
            character: int,
            ctx: Context[ServerSession, None],
            text: Optional[str] = None,
            version: Optional[int] = None,
        ) -> List[Dict[str, Any]]:
            """List completions at a 0-based line/character position of an APY file.

            Args:
                file_path: Path of the document
                line: 0-based line number
                character: 0-based character offset in the line
                ctx: MCP context for logging
                text: Current document text; read from disk when omitted
                version: Editor version of ``text``; newer versions supersede older requests

            Returns:
                List of completion items (label, kind, detail, sort_text)
            """
            try:
                document = self._document_for(file_path, text, version)
                items = await self._call(
                    self.service.complete, document, Position(line, character)
                )
                await ctx.info(f"{len(items)} completions for {file_path}:{line}:{character}")
                return [item.to_dict() for item in items]
            except FileNotFoundError:
                await ctx.error(f"File not found: {file_path}")
                raise
            except Exception as e:
                await ctx.error(f"Completion failed for {file_path}: {e}")
                raise

        @self.mcp.tool()
        async def definition(
            file_path: str,
            line: int,
            character: int,
            ctx: Context[ServerSession, None],
            text: Optional[str] = None,
            version: Optional[int] = None,
        ) -> Optional[Dict[str, Any]]:
            """Find where the symbol at a 0-based position is declared.

            Resolves table references to their schema YAML, library paths to
            module/member/method declarations, and bare names to same-file
            functions, classes and variables.

            Returns:
                Dictionary with path, line and column, or None if not found
            """
            try:
                document = self._document_for(file_path, text, version)
                location = await self._call(
                    self.service.definition, document, Position(line, character)
                )
                return location.to_dict() if location is not None else None
            except FileNotFoundError:
                await ctx.error(f"File not found: {file_path}")
                raise
            except Exception as e:
                await ctx.error(f"Definition lookup failed for {file_path}: {e}")
                raise

        @self.mcp.tool()
        async def hover(
            file_path: str,
            line: int,
            character: int,
            ctx: Context[ServerSession, None],
            text: Optional[str] = None,
            version: Optional[int] = None,
        ) -> Optional[Dict[str, Any]]:
            """Show the signature of the runtime member or library symbol at a position."""
            try:
                document = self._document_for(file_path, text, version)
                result = await self._call(
                    self.service.hover, document, Position(line, character)
                )
                return result.to_dict() if result is not None else None
            except FileNotFoundError:
                await ctx.error(f"File not found: {file_path}")
                raise
            except Exception as e:
                await ctx.error(f"Hover failed for {file_path}: {e}")
                raise

        @self.mcp.tool()
        async def signature_help(
            file_path: str,
            line: int,
            character: int,
            ctx: Context[ServerSession, None],
            text: Optional[str] = None,
            version: Optional[int] = None,
        ) -> Optional[Dict[str, Any]]:
            """Signature, parameter labels and active parameter of the call around a position."""
            try:
                document = self._document_for(file_path, text, version)
                result = await self._call(
                    self.service.signature_help, document, Position(line, character)
                )
                return result.to_dict() if result is not None else None
            except FileNotFoundError:
                await ctx.error(f"File not found: {file_path}")
                raise
            except Exception as e:
                await ctx.error(f"Signature help failed for {file_path}: {e}")
                raise

        @self.mcp.tool()
        async def invalidate_library_cache(
            ctx: Context[ServerSession, None],
            path: Optional[str] = None,
        ) -> Dict[str, Any]:
            """Drop cached library data after library files change.

            Args:
                ctx: MCP context for logging
                path: Changed module file; all cached modules when omitted

            Returns:
                Cache statistics after invalidation
            """
            try:
                self.service.on_library_changed(path)
                await ctx.info(f"Library cache invalidated ({path or 'all modules'})")
                return self.service.get_cache_statistics()
            except Exception as e:
                await ctx.error(f"Error invalidating library cache: {e}")
                raise

        logger.info(
            "MCP tools registered: complete, definition, hover, signature_help, "
            "invalidate_library_cache"
        )

    def run(self, transport: str = "stdio") -> None:
        """Run the MCP server.

        Args:
            transport: Transport type to use. Options:
                - "stdio": Standard input/output (default)
                - "streamable-http": HTTP transport
                - "sse": Server-sent events transport
        """
        self.service.start_library_watcher()
        logger.info(f"Starting MCP server with {transport} transport")
        try:
            self.mcp.run(transport=transport)  # type: ignore[arg-type]
        finally:
            self.shutdown()

    def shutdown(self) -> None:
        """Shutdown the MCP server and cleanup resources."""
        logger.info("Shutting down MCP server")
        self.service.shutdown()


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments.

    Returns:
        Parsed arguments namespace.
    """
    parser = argparse.ArgumentParser(
        description="APY Language Intelligence MCP Server",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--workspace",
        type=Path,
        default=None,
        help="Workspace root holding .apy_intel.yml and the libs/tables directories. "
        "Default: current directory",
    )
    parser.add_argument(
        "--transport",
        type=str,
        choices=["stdio", "streamable-http", "sse"],
        default="stdio",
        help="Transport type for MCP server. Default: stdio",
    )
    parser.add_argument(
        "--log-dir",
        type=Path,
        default=None,
        help="Directory for structured JSON log files. Default: console logging only",
    )
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> None:
    """Main entry point for MCP server."""
    args = parse_args(argv)

    if args.log_dir is not None:
        setup_logging(log_dir=args.log_dir)
    else:
        logging.basicConfig(
            level=logging.INFO,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        )

    config = Config(workspace_root=args.workspace)
    server = APYLanguageMCPServer(config=config)
    logger.info(f"Starting MCP server for workspace {config.workspace_root}")
    server.run(transport=args.transport)


if __name__ == "__main__":
    main()
