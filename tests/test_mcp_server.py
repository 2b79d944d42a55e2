# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Tests for the MCP protocol layer.

Test coverage:
- Server initialization with default and injected collaborators
- Unique server name and registered tools
- Document construction and versions from tool arguments
- Cancellation of service calls
- Command-line parsing and shutdown
"""

import asyncio
import threading
import time
from pathlib import Path

import pytest

# Skip tests if mcp package not available (requires Python 3.10+)
pytest.importorskip("mcp", reason="MCP package requires Python 3.10+")

from apy_intel.mcp_server import SERVER_NAME, APYLanguageMCPServer, parse_args  # noqa: E402
from apy_intel.service import (  # noqa: E402
    CancellationToken,
    Document,
    LanguageService,
    Position,
)


class TestAPYLanguageMCPServer:
    def test_server_initialization(self, config):
        server = APYLanguageMCPServer(config=config)

        assert server.config is config
        assert server.service is not None
        assert server.mcp is not None

    def test_injected_service(self, config, service):
        server = APYLanguageMCPServer(config=config, service=service)

        assert server.service is service

    def test_server_name_is_unique(self, config):
        server = APYLanguageMCPServer(config=config)

        assert server.mcp.name == SERVER_NAME == "apy-language-intelligence"

    @pytest.mark.asyncio
    async def test_tools_are_registered(self, config):
        server = APYLanguageMCPServer(config=config)

        tools = await server.mcp.list_tools()

        assert {tool.name for tool in tools} == {
            "complete",
            "definition",
            "hover",
            "signature_help",
            "invalidate_library_cache",
        }

    @pytest.mark.asyncio
    async def test_position_tools_share_parameters(self, config):
        server = APYLanguageMCPServer(config=config)

        tools = {tool.name: tool for tool in await server.mcp.list_tools()}

        for name in ("complete", "definition", "hover", "signature_help"):
            properties = tools[name].inputSchema["properties"]
            assert {"file_path", "line", "character", "text", "version"} <= set(properties)
            assert "ctx" not in properties

    def test_shutdown(self, config):
        server = APYLanguageMCPServer(config=config)

        # Should not raise
        server.shutdown()


class TestToolDelegation:
    """Tools build a Document and delegate to LanguageService."""

    def test_document_from_inline_text(self, config, service):
        server = APYLanguageMCPServer(config=config, service=service)

        document = server._document_for("/ws/handler.apy", "utils.")

        assert document.text == "utils."
        assert document.uri == "/ws/handler.apy"

    def test_document_from_disk(self, config, service, workspace):
        server = APYLanguageMCPServer(config=config, service=service)
        path = str(workspace / "handler.apy")

        document = server._document_for(path, None)

        assert document.text == (workspace / "handler.apy").read_text()

    def test_document_version_recorded(self, config, service):
        server = APYLanguageMCPServer(config=config, service=service)

        document = server._document_for("/ws/handler.apy", "utils.", version=3)

        assert document.version == 3
        assert service.is_current(document)
        assert not service.is_current(Document(uri="/ws/handler.apy", text="utils", version=2))

    @pytest.mark.asyncio
    async def test_call_passes_token_and_returns_result(self, config, service):
        server = APYLanguageMCPServer(config=config, service=service)
        document = server._document_for("/ws/handler.apy", "utils.", version=1)

        items = await server._call(service.complete, document, Position(0, 6))

        assert "slugify" in [item.label for item in items]

    @pytest.mark.asyncio
    async def test_cancelled_call_cancels_token(self, config, service):
        server = APYLanguageMCPServer(config=config, service=service)
        started = threading.Event()
        tokens = []

        def operation(token: CancellationToken) -> str:
            tokens.append(token)
            started.set()
            for _ in range(500):
                if token.is_cancelled:
                    return "stopped"
                time.sleep(0.01)
            return "finished"

        task = asyncio.ensure_future(server._call(operation))
        assert await asyncio.get_running_loop().run_in_executor(None, started.wait, 5)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
        assert tokens[0].is_cancelled

    def test_missing_document(self, config, service, workspace):
        server = APYLanguageMCPServer(config=config, service=service)

        with pytest.raises(FileNotFoundError):
            server._document_for(str(workspace / "missing.apy"), None)

    def test_invalidation_reported_through_statistics(self, config, service: LanguageService):
        server = APYLanguageMCPServer(config=config, service=service)
        server.service.on_library_changed()

        stats = server.service.get_cache_statistics()

        assert stats["module_index"]["invalidations"] == 1
        assert stats["import_list"]["invalidations"] == 1


class TestParseArgs:
    def test_defaults(self):
        args = parse_args([])

        assert args.workspace is None
        assert args.transport == "stdio"
        assert args.log_dir is None

    def test_all_options(self):
        args = parse_args(
            ["--workspace", "/ws", "--transport", "streamable-http", "--log-dir", "/tmp/logs"]
        )

        assert args.workspace == Path("/ws")
        assert args.transport == "streamable-http"
        assert args.log_dir == Path("/tmp/logs")

    def test_invalid_transport(self):
        with pytest.raises(SystemExit):
            parse_args(["--transport", "carrier-pigeon"])
