"""
Integration tests for the CLI application.

This module tests the command-line interface: configuration validation,
provider checks of tool call files, batch and workflow execution against
the in-process memory tools, and tool listing.
"""

import json
import pytest
import yaml
from unittest.mock import patch
from click.testing import CliRunner

from agentic_toolchain.main import cli, load_calls_file
from agentic_toolchain.orchestrator import WorkflowError


@pytest.fixture
def runner():
    """Create a Click test runner."""
    return CliRunner()


@pytest.fixture
def write_yaml(tmp_path):
    """Write data to a YAML file and return its path."""
    def _write(name, data):
        path = tmp_path / name
        path.write_text(data if isinstance(data, str) else yaml.dump(data), encoding="utf-8")
        return str(path)
    return _write


@pytest.fixture
def store_calls(write_yaml):
    """A calls file storing one memory."""
    return write_yaml("calls.yaml", [{
        "id": "call_1",
        "name": "memory-store",
        "arguments": {"type": "general", "title": "Greeting", "content": "Hello from the CLI"}
    }])


class TestCLIBasics:
    """Test basic CLI functionality."""

    def test_cli_help(self, runner):
        result = runner.invoke(cli, ["--help"])

        assert result.exit_code == 0
        assert "Agentic Toolchain" in result.output
        for command in ("validate", "check-calls", "run", "list-tools"):
            assert command in result.output

    def test_cli_with_invalid_log_level(self, runner):
        result = runner.invoke(cli, ["--log-level", "LOUD", "list-tools"])

        assert result.exit_code != 0

    def test_cli_with_nonexistent_config(self, runner):
        result = runner.invoke(cli, ["--config", "/nonexistent/config.yaml", "list-tools"])

        assert result.exit_code != 0

    def test_cli_with_invalid_config(self, runner, write_yaml):
        config_file = write_yaml("bad.yaml", {"workflow": {"max_iterations": 0}})

        result = runner.invoke(cli, ["--config", config_file, "list-tools"])

        assert result.exit_code == 1
        assert "Error loading configuration" in result.output


class TestValidateCommand:
    """Test the validate command."""

    def test_validate_valid_config(self, runner, write_yaml):
        config_file = write_yaml("config.yaml", {"workflow": {"max_iterations": 2}})

        result = runner.invoke(cli, ["validate", config_file])

        assert result.exit_code == 0
        assert f"✓ Configuration file '{config_file}' is valid" in result.output
        assert "! No backend base_url configured" in result.output

    def test_validate_with_detailed_flag(self, runner, write_yaml):
        config_file = write_yaml("config.yaml", {
            "backend": {"base_url": "http://localhost:8765"},
            "workflow": {"max_iterations": 2, "recover_failures": True}
        })

        result = runner.invoke(cli, ["validate", config_file, "--detailed"])

        assert result.exit_code == 0
        assert "Backend URL: http://localhost:8765" in result.output
        assert "Max Iterations: 2" in result.output
        assert "Recover Failures: True" in result.output

    def test_validate_invalid_config(self, runner, write_yaml):
        config_file = write_yaml("config.yaml", {"formatter": {"search_result_limit": 0}})

        result = runner.invoke(cli, ["validate", config_file])

        assert result.exit_code == 1
        assert "is invalid" in result.output
        assert "Search result limit must be greater than 0" in result.output

    def test_validate_nonexistent_file(self, runner):
        result = runner.invoke(cli, ["validate", "/nonexistent/config.yaml"])

        assert result.exit_code != 0


class TestCheckCallsCommand:
    """Test the check-calls command."""

    def test_valid_calls(self, runner, store_calls):
        result = runner.invoke(cli, ["check-calls", store_calls, "--provider", "openai"])

        assert result.exit_code == 0
        assert "✓ 1 tool call(s) are valid for openai" in result.output

    def test_invalid_calls(self, runner, write_yaml):
        calls_file = write_yaml("calls.yaml", [{"name": "x", "arguments": {}}])

        result = runner.invoke(cli, ["check-calls", calls_file, "-p", "openai"])

        assert result.exit_code == 1
        assert "OpenAI tool call missing required id: x" in result.output

    def test_openai_style_json_file(self, runner, tmp_path):
        calls_file = tmp_path / "calls.json"
        calls_file.write_text(json.dumps([
            {"id": "call_1", "type": "function", "function": {"name": "lookup", "arguments": "{\"q\": 1}"}}
        ]), encoding="utf-8")

        result = runner.invoke(cli, ["check-calls", str(calls_file), "-p", "ollama"])

        assert result.exit_code == 0

    def test_requires_provider(self, runner, store_calls):
        result = runner.invoke(cli, ["check-calls", store_calls])

        assert result.exit_code != 0


class TestRunCommand:
    """Test the run command."""

    def test_run_model_format(self, runner, store_calls):
        result = runner.invoke(cli, ["run", store_calls, "--format", "model"])

        assert result.exit_code == 0
        assert result.output.startswith("[TOOL_RESULTS]\nmemory-store:\n✅ Memory saved (id: mem_")

    def test_run_debug_format(self, runner, store_calls):
        result = runner.invoke(cli, ["run", store_calls])

        assert result.exit_code == 0
        assert "🔧 Multi-Tool Execution Results" in result.output
        assert "Success Rate: 100%" in result.output

    def test_run_json_format(self, runner, store_calls):
        result = runner.invoke(cli, ["run", store_calls, "--format", "json"])

        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data[0]["id"] == "call_1"
        assert data[0]["success"] is True
        assert json.loads(data[0]["result"])["stored"]["title"] == "Greeting"

    def test_run_exits_when_every_call_fails(self, runner, write_yaml):
        calls_file = write_yaml("calls.yaml", [{"name": "web-search", "arguments": {"query": "x"}}])

        result = runner.invoke(cli, ["run", calls_file])

        assert result.exit_code == 1
        assert "Success Rate: 0%" in result.output
        assert "web-search" in result.output

    def test_run_workflow(self, runner, write_yaml):
        calls_file = write_yaml("calls.yaml", {
            "calls": [{"name": "memory-store", "arguments": {"title": "Note", "content": "Workflow run"}}],
            "available_tools": ["memory-store", "memory-search"]
        })

        result = runner.invoke(cli, ["run", calls_file, "--workflow", "--max-iterations", "2", "--format", "json"])

        assert result.exit_code == 0
        data = json.loads(result.output)
        assert len(data["workflow"]) == 1
        assert data["summary"].startswith("Agentic Workflow Summary")

    def test_run_workflow_model_format(self, runner, store_calls):
        result = runner.invoke(cli, ["run", store_calls, "--workflow", "--format", "model"])

        assert result.exit_code == 0
        assert result.output.startswith("Agentic Workflow Summary")

    def test_run_with_config(self, runner, store_calls, write_yaml):
        config_file = write_yaml("config.yaml", {"formatter": {"model_result_max_chars": 10}})

        result = runner.invoke(cli, ["--config", config_file, "run", store_calls, "--format", "model"])

        assert result.exit_code == 0
        assert "memory-store:\n✅ Memor...\n" in result.output

    def test_run_with_invalid_calls_file(self, runner, write_yaml):
        calls_file = write_yaml("calls.yaml", {"calls": "not a list"})

        result = runner.invoke(cli, ["run", calls_file])

        assert result.exit_code == 1
        assert "Calls file must contain a list of tool calls" in result.output

    @patch("agentic_toolchain.main.ToolWorkflowEngine")
    def test_run_with_engine_error(self, mock_engine, runner, store_calls):
        mock_engine.side_effect = WorkflowError("Failed to create tool backend: No tool backend configured")

        result = runner.invoke(cli, ["run", store_calls])

        assert result.exit_code == 1
        assert "Error: Failed to create tool backend" in result.output


class TestListToolsCommand:
    """Test the list-tools command."""

    def test_list_tools(self, runner):
        result = runner.invoke(cli, ["list-tools"])

        assert result.exit_code == 0
        assert "5 tool(s) available:" in result.output
        assert "  memory-store: Store information in memory" in result.output

    def test_list_tools_json(self, runner):
        result = runner.invoke(cli, ["list-tools", "--json"])

        assert result.exit_code == 0
        tools = json.loads(result.output)
        assert [tool["name"] for tool in tools][:2] == ["memory-store", "memory-search"]
        assert "inputSchema" in tools[0]


class TestLoadCallsFile:
    """Test cases for load_calls_file."""

    def test_list_of_calls(self, store_calls):
        calls, available_tools = load_calls_file(store_calls)

        assert calls[0].name == "memory-store"
        assert calls[0].id == "call_1"
        assert available_tools is None

    def test_mapping_with_available_tools(self, write_yaml):
        calls_file = write_yaml("calls.yaml", {"calls": [{"name": "a"}], "available_tools": ["a", "b"]})

        calls, available_tools = load_calls_file(calls_file)

        assert [call.name for call in calls] == ["a"]
        assert available_tools == ["a", "b"]
