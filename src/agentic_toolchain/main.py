#!/usr/bin/env python3
"""
Command-line interface for the Agentic Toolchain.
"""

import asyncio
import json
import logging
import os
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import click
import yaml
from dotenv import load_dotenv

from .config import ConfigurationLoader, ConfigurationError
from .models import SystemConfig
from .orchestrator import ToolWorkflowEngine, WorkflowError
from .tools.base import ToolCall
from .tools.validator import ToolCallValidator, DEFAULT_PROVIDER_PROFILES

load_dotenv()


def setup_logging(log_level: str, verbose: bool = False) -> None:
    """Set up logging configuration for the CLI."""
    numeric_level = getattr(logging, log_level.upper(), None)
    if not isinstance(numeric_level, int):
        raise ValueError(f'Invalid log level: {log_level}')

    log_format = '%(asctime)s - %(name)s - %(levelname)s - %(message)s' if verbose else '%(levelname)s: %(message)s'

    logging.basicConfig(level=numeric_level, format=log_format, datefmt='%Y-%m-%d %H:%M:%S')

    if numeric_level > logging.DEBUG:
        for logger_name in ['aiohttp', 'asyncio']:
            logging.getLogger(logger_name).setLevel(logging.WARNING)


def validate_file_path(ctx, param, value: Optional[str]) -> Optional[Path]:
    """Validate that a file path exists and is readable."""
    if value is None:
        return None

    path = Path(value)
    if not path.exists():
        raise click.BadParameter(f"File does not exist: {value}")
    if not path.is_file():
        raise click.BadParameter(f"Path is not a file: {value}")
    if not os.access(path, os.R_OK):
        raise click.BadParameter(f"File is not readable: {value}")

    return path


def load_calls_file(calls_file: str) -> Tuple[List[ToolCall], Optional[List[Any]]]:
    """
    Load tool calls from a YAML or JSON file.

    The file holds either a list of calls or a mapping with a ``calls`` list
    and an optional ``available_tools`` list.

    Raises:
        click.ClickException: If the file cannot be parsed
    """
    try:
        with open(calls_file, 'r', encoding='utf-8') as file:
            data = yaml.safe_load(file)
    except yaml.YAMLError as e:
        raise click.ClickException(f"Failed to parse calls file: {e}")

    available_tools = None
    if isinstance(data, dict):
        available_tools = data.get("available_tools")
        data = data.get("calls")

    if not isinstance(data, list) or not all(isinstance(item, dict) for item in data):
        raise click.ClickException("Calls file must contain a list of tool calls")

    return [ToolCall.from_dict(item) for item in data], available_tools


def _create_engine(ctx) -> ToolWorkflowEngine:
    system_config = ctx.obj.get('system_config') or SystemConfig()
    return ToolWorkflowEngine(config=system_config)


@click.group()
@click.option('--config', '-c', type=click.Path(exists=True, file_okay=True, dir_okay=False, readable=True),
              callback=validate_file_path, help='Path to configuration file (YAML format)')
@click.option('--log-level', '-l', type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'], case_sensitive=False),
              default='WARNING', help='Set the logging level')
@click.option('--verbose', '-v', is_flag=True, help='Enable verbose output with detailed logging')
@click.pass_context
def cli(ctx, config: Optional[Path], log_level: str, verbose: bool):
    """Agentic Toolchain - validate, execute and chain LLM tool calls."""
    ctx.ensure_object(dict)
    setup_logging(log_level, verbose)

    ctx.obj.update({
        'config_path': config,
        'log_level': log_level,
        'verbose': verbose
    })

    if config:
        try:
            loader = ConfigurationLoader()
            ctx.obj['system_config'] = loader.load_from_file(config)
        except ConfigurationError as e:
            click.echo(f"Error loading configuration: {e}", err=True)
            sys.exit(1)


@cli.command()
@click.argument('config_file', type=click.Path(exists=True, file_okay=True, dir_okay=False, readable=True))
@click.option('--detailed', is_flag=True, help='Show detailed validation information')
def validate(config_file: str, detailed: bool):
    """Validate a configuration file."""
    loader = ConfigurationLoader()
    validation_result = loader.validate_config_file(config_file)

    if not validation_result['is_valid']:
        click.echo(f"✗ Configuration file '{config_file}' is invalid", err=True)
        click.echo("\nErrors found:", err=True)
        for error in validation_result['errors']:
            click.echo(f"  - {error}", err=True)
        sys.exit(1)

    click.echo(f"✓ Configuration file '{config_file}' is valid")

    for warning in validation_result['warnings']:
        click.echo(f"  ! {warning}")

    if detailed:
        system_config = loader.load_from_file(config_file)
        click.echo("\nConfiguration Details:")
        click.echo(f"  Backend URL: {system_config.backend.base_url or '(memory tools only)'}")
        click.echo(f"  Memory Tools: {'enabled' if system_config.backend.enable_memory_tools else 'disabled'}")
        click.echo(f"  Max Iterations: {system_config.workflow.max_iterations}")
        click.echo(f"  Max Chain Suggestions: {system_config.workflow.max_chain_suggestions}")
        click.echo(f"  Recover Failures: {system_config.workflow.recover_failures}")
        click.echo(f"  Log Level: {system_config.logging.log_level}")


@cli.command('check-calls')
@click.argument('calls_file', type=click.Path(exists=True, file_okay=True, dir_okay=False, readable=True))
@click.option('--provider', '-p', required=True,
              help=f"Provider convention to check against ({', '.join(sorted(DEFAULT_PROVIDER_PROFILES))})")
def check_calls(calls_file: str, provider: str):
    """Validate tool calls against a provider's conventions."""
    calls, _ = load_calls_file(calls_file)
    result = ToolCallValidator().validate_tool_calls_for_provider(calls, provider)

    if result.valid:
        click.echo(f"✓ {len(calls)} tool call(s) are valid for {provider}")
        return

    click.echo(f"✗ {len(result.errors)} problem(s) found in {len(calls)} tool call(s) for {provider}:", err=True)
    for error in result.errors:
        click.echo(f"  - {error}", err=True)
    sys.exit(1)


@cli.command()
@click.argument('calls_file', type=click.Path(exists=True, file_okay=True, dir_okay=False, readable=True))
@click.option('--provider', '-p', help='Provider convention the calls follow')
@click.option('--workflow', is_flag=True, help='Chain follow-up calls over several iterations')
@click.option('--max-iterations', type=int, help='Maximum workflow iterations (defaults to the configuration)')
@click.option('--format', 'output_format', type=click.Choice(['model', 'debug', 'json'], case_sensitive=False),
              default='debug', help='Output format')
@click.pass_context
def run(ctx, calls_file: str, provider: Optional[str], workflow: bool,
        max_iterations: Optional[int], output_format: str):
    """Execute the tool calls in CALLS_FILE."""
    calls, available_tools = load_calls_file(calls_file)

    async def execute() -> Dict[str, Any]:
        async with _create_engine(ctx) as engine:
            if workflow:
                trace = await engine.run_workflow(calls, available_tools, max_iterations, provider)
                results = trace.results
                rendered = {
                    "model": trace.summary,
                    "debug": trace.summary + "\n\n" + engine.aggregate(results),
                    "json": json.dumps(trace.to_dict(), indent=2, ensure_ascii=False)
                }
            else:
                results = await engine.execute(calls, provider)
                rendered = {
                    "model": engine.summarize(results),
                    "debug": engine.aggregate(results),
                    "json": json.dumps([result.to_dict() for result in results], indent=2, ensure_ascii=False)
                }
            return {"results": results, "output": rendered[output_format.lower()]}

    try:
        outcome = asyncio.run(execute())
    except WorkflowError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    except KeyboardInterrupt:
        click.echo("\nExecution interrupted by user.", err=True)
        sys.exit(1)

    click.echo(outcome["output"])

    if outcome["results"] and not any(result.success for result in outcome["results"]):
        sys.exit(1)


@cli.command('list-tools')
@click.option('--json', 'as_json', is_flag=True, help='Print tool definitions as JSON')
@click.pass_context
def list_tools(ctx, as_json: bool):
    """List the tools exposed by the configured backends."""
    async def fetch():
        async with _create_engine(ctx) as engine:
            return await engine.list_tools()

    try:
        tools = asyncio.run(fetch())
    except WorkflowError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    except Exception as e:
        click.echo(f"Failed to list tools: {e}", err=True)
        if ctx.obj.get('verbose'):
            import traceback
            traceback.print_exc()
        sys.exit(1)

    if as_json:
        click.echo(json.dumps([tool.to_dict() for tool in tools], indent=2, ensure_ascii=False))
        return

    click.echo(f"{len(tools)} tool(s) available:")
    for tool in tools:
        click.echo(f"  {tool.name}: {tool.description}")


def main():
    """Main entry point for the CLI application."""
    try:
        cli()
    except KeyboardInterrupt:
        click.echo("\nOperation cancelled by user.", err=True)
        sys.exit(1)


if __name__ == '__main__':
    main()
