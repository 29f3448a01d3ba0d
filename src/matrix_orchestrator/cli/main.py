"""
Command-line interface for matrix_orchestrator.

Typical use (inside a scheduled Container Apps Job):
    matrix-orch run

Manual run for a subset of the matrix:
    matrix-orch run --matrix '[{"env":"qa","platform":"web"}]'
    TEST_CONFIGS_JSON='[{"env":"qa","platform":"web"}]' matrix-orch run

Inspect what a run would do:
    matrix-orch matrix --config-file orchestrator.yaml
    matrix-orch config --config-file orchestrator.yaml
    matrix-orch run --dry-run --config-file orchestrator.yaml

Settings come from --config-file (YAML) or Azure App Configuration
(APP_CONFIG_ENDPOINT), with environment variables as fallback.

Exit codes (run):
    0 - all executions started
    1 - one or more executions failed to start, or a fatal error occurred
"""

import asyncio
import logging
import os

import click


def _setup_logging(level: str) -> None:
    logging.basicConfig(level=getattr(logging, level), format='%(message)s')
    # The Azure SDK logs every HTTP request at INFO
    logging.getLogger('azure').setLevel(logging.WARNING)


def _build_resolver(config_file):
    from ..config import AppConfigProvider, ConfigResolver, YamlConfigProvider
    from ..config.resolver import ENDPOINT_VAR

    endpoint = os.environ.get(ENDPOINT_VAR, '').strip()
    if config_file:
        primary = YamlConfigProvider(config_file)
    elif endpoint:
        primary = AppConfigProvider(endpoint)
    else:
        primary = None

    return ConfigResolver(primary)


def _resolve_custom_matrix(matrix_json, matrix_file):
    from ..run.matrix_input import custom_matrix_from_env, load_custom_matrix, parse_custom_matrix

    if matrix_json:
        return parse_custom_matrix(matrix_json, source='--matrix')
    if matrix_file:
        return load_custom_matrix(matrix_file)
    return custom_matrix_from_env()


async def _start_executions(resolver, custom_matrix, dry_run, serialize_calls):
    from ..config import resolve_azure_context
    from ..jobs import ContainerAppsStartClient, DryRunStartClient, ExecutionDispatcher
    from ..run import Orchestrator

    if dry_run:
        client = DryRunStartClient()
    else:
        client = ContainerAppsStartClient(resolve_azure_context())

    async with client:
        dispatcher = ExecutionDispatcher(client, serialize_calls=serialize_calls)
        orchestrator = Orchestrator(resolver, dispatcher)
        return await orchestrator.run(custom_matrix)


@click.group()
@click.version_option(package_name='matrix-orchestrator')
def cli():
    """Matrix Orchestrator - start job executions for an environment x platform matrix."""
    pass


@cli.command('run')
@click.option('--config-file', '-c', type=click.Path(exists=True),
              help='YAML settings file (default: App Configuration / environment)')
@click.option('--matrix', 'matrix_json',
              help='Custom matrix as a JSON array of {"env", "platform"} objects')
@click.option('--matrix-file', type=click.Path(exists=True),
              help='Custom matrix from a YAML or JSON file')
@click.option('--dry-run', is_flag=True, help='Build requests without starting executions')
@click.option('--serialize-calls', is_flag=True,
              help='Send start requests one at a time through the client')
@click.option('--results-csv', type=click.Path(), help='Write per-cell results to CSV')
@click.option('--log-level', default='INFO',
              type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR']),
              help='Logging level')
def run_command(config_file, matrix_json, matrix_file, dry_run, serialize_calls, results_csv, log_level):
    """Start one job execution per matrix cell."""
    from ..errors import OrchestratorError
    from ..run import report_to_frame

    _setup_logging(log_level)

    if matrix_json and matrix_file:
        raise click.UsageError("--matrix and --matrix-file are mutually exclusive")

    try:
        custom_matrix = _resolve_custom_matrix(matrix_json, matrix_file)
        if custom_matrix:
            click.echo(f"Custom matrix provided: {len(custom_matrix)} configurations")
        else:
            click.echo("No custom matrix provided -> using configured matrix")

        resolver = _build_resolver(config_file)
        report = asyncio.run(_start_executions(resolver, custom_matrix, dry_run, serialize_calls))
    except OrchestratorError as err:
        click.echo(f"Fatal error: {err}", err=True)
        raise SystemExit(1)

    if results_csv:
        report_to_frame(report).to_csv(results_csv, index=False)
        click.echo(f"Saved results to {results_csv}")

    click.echo(f"{report.message} ({report.successful}/{report.total} started)")
    raise SystemExit(0 if report.success else 1)


@cli.command('matrix')
@click.option('--config-file', '-c', type=click.Path(exists=True),
              help='YAML settings file (default: App Configuration / environment)')
def matrix_command(config_file):
    """Print the resolved environment x platform matrix."""
    _setup_logging('WARNING')

    matrix = _build_resolver(config_file).resolve_matrix()

    click.echo(f"Test Matrix: {len(matrix)} configurations")
    for cell in matrix:
        click.echo(f"  - {cell.label}")


@cli.command('config')
@click.option('--config-file', '-c', type=click.Path(exists=True),
              help='YAML settings file (default: App Configuration / environment)')
def config_command(config_file):
    """Print the resolved runner settings (passthrough values are not shown)."""
    from ..errors import ConfigError

    _setup_logging('WARNING')
    resolver = _build_resolver(config_file)

    try:
        resources = resolver.resolve_resource_config()
        job_id = resolver.resolve_job_id()
    except ConfigError as err:
        click.echo(f"Error: {err}", err=True)
        raise SystemExit(1)

    click.echo(f"Job:               {job_id}")
    click.echo(f"Image:             {resources.image or '(not set)'}")
    click.echo(f"Container:         {resources.container_name}")
    click.echo(f"CPU:               {resources.cpu_units}")
    click.echo(f"Memory (GiB):      {resources.memory_gib}")
    click.echo(f"Concurrency limit: {resolver.resolve_concurrency_limit()}")

    network = resources.network
    if network is not None:
        click.echo(f"Network:           {network.vnet_name}"
                   f"{' (internal only)' if network.internal_only else ''}")
        if network.subnet_name:
            click.echo(f"Subnet:            {network.subnet_name}")
    else:
        click.echo("Network:           (not specified)")

    keys = sorted(resources.passthrough_env or {})
    click.echo(f"Passthrough keys:  {', '.join(keys) if keys else '(none)'}")


if __name__ == '__main__':
    cli()
