"""Tests for cms_json_sync.mcp.lifespan: server startup/shutdown lifecycle.

Tests the server_lifespan() async context manager which:
- Loads layered config (with optional CLI overrides)
- Opens the workspace store and reads it once
- Fails fast on config errors or an unreadable workspace
- Prints status messages to stderr
"""

import json
from unittest.mock import patch

import pytest

from cms_json_sync.config import Config
from cms_json_sync.mcp.lifespan import server_lifespan
from cms_json_sync.store import JsonFileStore


def _patch_config(config, sources=("environment variables",)):
    return patch(
        "cms_json_sync.mcp.lifespan.load_layered_config",
        return_value=(config, list(sources)),
    )


@pytest.fixture
def workspace_file(tmp_path):
    path = tmp_path / "workspace.json"
    path.write_text(
        json.dumps({"collections": [{"id": "c-1", "name": "Posts"}]}),
        encoding="utf-8",
    )
    return path


# -------------------------------------------------------------------------
# server_lifespan(): successful startup
# -------------------------------------------------------------------------


class TestServerLifespanSuccess:
    async def test_yields_store_and_config(self, workspace_file):
        config = Config(store_path=str(workspace_file))

        with _patch_config(config), patch("cms_json_sync.mcp.lifespan._stderr_print"):
            async with server_lifespan() as ctx:
                assert ctx["config"] is config
                assert isinstance(ctx["store"], JsonFileStore)
                assert ctx["store"].path == workspace_file
                assert [c.name for c in ctx["store"].list_collections()] == ["Posts"]

    async def test_missing_workspace_is_empty(self, tmp_path):
        """A fresh project has no workspace file yet."""
        config = Config(store_path=str(tmp_path / "new.json"))

        with _patch_config(config), patch("cms_json_sync.mcp.lifespan._stderr_print"):
            async with server_lifespan() as ctx:
                assert ctx["store"].list_collections() == []

    async def test_overrides_passed_through(self, workspace_file):
        overrides = {"store_path": str(workspace_file), "collection": "Posts"}

        with (
            _patch_config(Config(store_path=str(workspace_file))) as mock_load,
            patch("cms_json_sync.mcp.lifespan.load_dotenv") as mock_dotenv,
            patch("cms_json_sync.mcp.lifespan._stderr_print"),
        ):
            async with server_lifespan(overrides):
                pass

        mock_dotenv.assert_called_once()
        mock_load.assert_called_once_with(overrides)

    async def test_status_messages(self, workspace_file):
        config = Config(store_path=str(workspace_file))

        with (
            _patch_config(config, ["config file: /p/config.yml", "environment variables"]),
            patch("cms_json_sync.mcp.lifespan._stderr_print") as mock_print,
        ):
            async with server_lifespan():
                pass

        printed = [c.args[0] for c in mock_print.call_args_list]
        assert "  Configuration loaded from: config file: /p/config.yml, environment variables" in printed
        assert "  Collections: 1" in printed
        assert printed[-1] == "cms-json-sync MCP server shutting down."


# -------------------------------------------------------------------------
# server_lifespan(): startup failures
# -------------------------------------------------------------------------


class TestServerLifespanFailure:
    async def test_config_error(self):
        with (
            patch(
                "cms_json_sync.mcp.lifespan.load_layered_config",
                side_effect=ValueError("Invalid conflict strategy 'x'"),
            ),
            patch("cms_json_sync.mcp.lifespan._stderr_print"),
        ):
            with pytest.raises(RuntimeError, match="Configuration error: Invalid conflict"):
                async with server_lifespan():
                    pass

    async def test_unreadable_workspace(self, tmp_path):
        broken = tmp_path / "workspace.json"
        broken.write_text("{not json", encoding="utf-8")

        with (
            _patch_config(Config(store_path=str(broken))),
            patch("cms_json_sync.mcp.lifespan._stderr_print") as mock_print,
        ):
            with pytest.raises(RuntimeError, match="Cannot read workspace"):
                async with server_lifespan():
                    pass

        assert any("ERROR" in c.args[0] for c in mock_print.call_args_list)
