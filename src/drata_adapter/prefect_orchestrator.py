"""
Prefect Orchestration for the Drata adapter
Runs the polling trigger or a single resource operation as Prefect flows

python -m drata_adapter.prefect_orchestrator --config configs/drata.toml --event controlStatusChanged --poll
python -m drata_adapter.prefect_orchestrator --config configs/drata.toml --resource control --operation getAll --param returnAll=true
"""

import json
import logging
import argparse
import traceback
from pathlib import Path
from typing import Dict, List, Any, Optional
from datetime import timedelta

from prefect import flow, task, get_run_logger
from prefect.tasks import task_input_hash

from drata_adapter.config_loader import ConfigLoader, ConfigurationError, MissingEnvironmentError
from drata_adapter.context import NodeExecutionContext
from drata_adapter.database_manager import DatabaseManager
from drata_adapter.http_client import DrataHTTPClient
from drata_adapter.node import DrataNode
from drata_adapter.pagination_strategy import PageBasedPagination
from drata_adapter.retry_handler import RetryHandler
from drata_adapter.trigger import DrataTrigger, EventType, TriggerOptions
from drata_adapter.watermark_store import DuckDBWatermarkStore

DEFAULT_STATE_DB = "data/databases/drata_trigger_state.db"

# ===================================================================
# PREFECT TASKS
# ===================================================================

@task(
    name="validate_configuration_and_environment",
    description="Validate TOML configuration and environment variables",
    cache_key_fn=task_input_hash,
    cache_expiration=timedelta(hours=1),
    retries=0
)
def validate_configuration_and_environment(config_path: str) -> Dict[str, Any]:
    """
    Validate TOML configuration and environment variables

    Returns:
        Validation results and config summary
    """
    logger = get_run_logger()
    logger.info(f"Validating configuration: {config_path}")

    try:
        config = ConfigLoader.load_toml_config(Path(config_path))
        ConfigLoader.validate_environment_variables(config)

        logger.info("Configuration and environment validation passed")
        return {
            'status': 'valid',
            'config_summary': {
                'api_name': config.name,
                'base_url': config.base_url,
                'page_size': config.page_size,
                'max_retries': config.max_retries
            }
        }

    except (ConfigurationError, MissingEnvironmentError) as e:
        logger.error(f"Configuration validation failed: {e}")
        raise


@task(
    name="poll_drata_events",
    description="Run one poll cycle of the Drata trigger and advance its watermark",
    retries=0
)
def poll_drata_events(config_path: str, event: str, node_id: str,
                      options: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
    """
    Poll Drata for one event type using a DuckDB-backed watermark

    Args:
        config_path: Path to TOML configuration file
        event: Trigger event type
        node_id: Identifier of the trigger instance owning the watermark
        options: Trigger options (daysBeforeExpiry, frameworkId, includeDetails)

    Returns:
        Events produced by this cycle (empty list when none)
    """
    logger = get_run_logger()
    config = ConfigLoader.load_toml_config(Path(config_path))
    credentials = ConfigLoader.build_credentials(config)

    trigger_config = config.trigger
    merged_options = {
        'daysBeforeExpiry': trigger_config.get('days_before_expiry', 30),
        **(options or {})
    }

    http_client = DrataHTTPClient(base_url=config.base_url, timeout=config.timeout_seconds)
    http_client.authenticate(credentials)
    retry_handler = RetryHandler(http_client, max_retries=config.max_retries,
                                 backoff_factor=config.backoff_factor)

    state_db_path = Path(trigger_config.get('state_db_path', DEFAULT_STATE_DB))

    try:
        with DatabaseManager(state_db_path) as db_manager:
            store = DuckDBWatermarkStore(db_manager, node_id)

            trigger = DrataTrigger(
                http_client=http_client,
                event=event,
                store=store,
                options=TriggerOptions.from_dict(merged_options),
                retry_handler=retry_handler,
                pagination=PageBasedPagination(page_size=config.page_size),
                lookback=timedelta(hours=trigger_config.get('lookback_hours', 24))
            )

            logger.info(f"Polling Drata for {event} (node {node_id}, watermark {store.get()})")
            events = trigger.poll() or []
            logger.info(f"Poll produced {len(events)} event(s)")
            return events

    finally:
        http_client.close_connection()


@task(
    name="run_drata_operation",
    description="Execute one Drata resource operation",
    retries=0
)
def run_drata_operation(config_path: str, parameters: Dict[str, Any],
                        continue_on_fail: bool = False) -> List[Dict[str, Any]]:
    """
    Execute a resource operation for a single input item

    Returns:
        Output items produced by the node
    """
    logger = get_run_logger()
    config = ConfigLoader.load_toml_config(Path(config_path))
    credentials = ConfigLoader.build_credentials(config)

    context = NodeExecutionContext(
        parameters=parameters,
        credentials=credentials,
        continue_on_fail=continue_on_fail,
        page_size=config.page_size,
        timeout=config.timeout_seconds
    )

    try:
        results = DrataNode(context).execute()
        logger.info(f"Operation {parameters.get('resource')}.{parameters.get('operation')} "
                    f"returned {len(results)} item(s)")
        return results
    finally:
        context.http_client.close_connection()


# ===================================================================
# PREFECT FLOWS
# ===================================================================

@flow(
    name="drata-trigger",
    description="Poll Drata for compliance events with a persisted watermark",
    version="1.0.0",
    timeout_seconds=900,
    log_prints=True
)
def drata_trigger_flow(config_path: str, event: str, node_id: str = "default",
                       options: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """
    Validate configuration, then run one trigger poll

    Returns:
        Poll summary and events
    """
    logger = get_run_logger()
    logger.info(f"Starting Drata trigger flow for event {event}")

    validation_results = validate_configuration_and_environment(config_path)
    events = poll_drata_events(config_path, event, node_id, options)

    return {
        'status': 'SUCCESS',
        'event': event,
        'node_id': node_id,
        'event_count': len(events),
        'events': events,
        'config_validation': validation_results
    }


@flow(
    name="drata-operation",
    description="Execute a single Drata resource operation",
    version="1.0.0",
    timeout_seconds=1800,
    log_prints=True
)
def drata_operation_flow(config_path: str, parameters: Dict[str, Any],
                         continue_on_fail: bool = False) -> Dict[str, Any]:
    """
    Validate configuration, then execute one operation

    Returns:
        Operation summary and output items
    """
    validate_configuration_and_environment(config_path)
    results = run_drata_operation(config_path, parameters, continue_on_fail)

    return {
        'status': 'SUCCESS',
        'resource': parameters.get('resource'),
        'operation': parameters.get('operation'),
        'item_count': len(results),
        'items': results
    }


# ===================================================================
# UTILITY FUNCTIONS
# ===================================================================

def parse_parameter_pairs(pairs: Optional[List[str]]) -> Dict[str, Any]:
    """
    Parse key=value CLI pairs, decoding values as JSON where possible

    Raises:
        ValueError: If a pair has no '='
    """
    parameters: Dict[str, Any] = {}
    for pair in pairs or []:
        if '=' not in pair:
            raise ValueError(f"Parameter must be key=value, got '{pair}'")
        key, raw_value = pair.split('=', 1)
        try:
            parameters[key.strip()] = json.loads(raw_value)
        except json.JSONDecodeError:
            parameters[key.strip()] = raw_value
    return parameters


def configure_logging(config_path: Optional[str], verbose: bool) -> None:
    """Set the root log level from [logging] level, or DEBUG when verbose"""
    level_name = 'INFO'
    if config_path:
        try:
            config = ConfigLoader.load_toml_config(Path(config_path))
            level_name = str(config.logging.get('level', level_name)).upper()
        except (FileNotFoundError, ConfigurationError):
            pass  # Reported again by the command itself
    if verbose:
        level_name = 'DEBUG'
    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )


def serve_flow(config_path: str, event: str, node_id: str, interval_seconds: int) -> None:
    """Serve the trigger flow on a fixed polling interval"""
    print(f"Serving Drata trigger for {event} every {interval_seconds}s")

    drata_trigger_flow.serve(
        name=f"drata-trigger-{event}",
        tags=["drata", "trigger"],
        description="Drata compliance event polling",
        version="1.0.0",
        interval=interval_seconds,
        parameters={'config_path': config_path, 'event': event, 'node_id': node_id}
    )


# ===================================================================
# COMMAND LINE INTERFACE
# ===================================================================

def main(argv: Optional[List[str]] = None) -> int:
    """Main execution function with CLI"""
    parser = argparse.ArgumentParser(
        description="Drata adapter: polling trigger and resource operations",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Run one poll for control status changes
  python -m drata_adapter.prefect_orchestrator --config configs/drata.toml --event controlStatusChanged --poll

  # List all controls
  python -m drata_adapter.prefect_orchestrator --config configs/drata.toml --resource control --operation getAll --param returnAll=true

  # Validate configuration only
  python -m drata_adapter.prefect_orchestrator --config configs/drata.toml --validate-only

  # Serve the trigger every 5 minutes
  python -m drata_adapter.prefect_orchestrator --config configs/drata.toml --event evidenceExpiring --serve --interval 300
        """
    )

    parser.add_argument("--config", help="Path to TOML configuration file")
    parser.add_argument("--event", choices=[e.value for e in EventType], help="Trigger event type")
    parser.add_argument("--node-id", default="default", help="Trigger instance owning the watermark")
    parser.add_argument("--poll", action="store_true", help="Run one trigger poll")
    parser.add_argument("--resource", help="Resource for a single operation run")
    parser.add_argument("--operation", help="Operation for a single operation run")
    parser.add_argument("--param", action="append", metavar="KEY=VALUE", help="Operation or trigger option")
    parser.add_argument("--continue-on-fail", action="store_true", help="Report item errors instead of failing")
    parser.add_argument("--validate-only", action="store_true", help="Only validate configuration")
    parser.add_argument("--serve", action="store_true", help="Serve the trigger flow on an interval")
    parser.add_argument("--interval", type=int, default=300, help="Polling interval in seconds for --serve")
    parser.add_argument("--verbose", action="store_true", help="Enable verbose logging")

    args = parser.parse_args(argv)
    configure_logging(args.config, args.verbose)

    if not args.config:
        print("--config is required")
        parser.print_help()
        return 1

    try:
        params = parse_parameter_pairs(args.param)

        if args.validate_only:
            result = validate_configuration_and_environment(args.config)
            print("Configuration validation passed!")
            print(f"API: {result['config_summary']['api_name']}")
            print(f"Base URL: {result['config_summary']['base_url']}")
            return 0

        if args.serve:
            if not args.event:
                print("--event is required when using --serve")
                return 1
            serve_flow(args.config, args.event, args.node_id, args.interval)
            return 0

        if args.poll:
            if not args.event:
                print("--event is required when using --poll")
                return 1
            result = drata_trigger_flow(args.config, args.event, args.node_id, params)
            print(json.dumps(result['events'], indent=2, default=str))
            print(f"{result['event_count']} event(s) for {args.event}")
            return 0

        if args.resource and args.operation:
            parameters = {'resource': args.resource, 'operation': args.operation, **params}
            result = drata_operation_flow(args.config, parameters, args.continue_on_fail)
            print(json.dumps([item['json'] for item in result['items']], indent=2, default=str))
            return 0

        parser.print_help()
        return 1

    except Exception as e:
        print(f"\nExecution failed: {e}")
        if args.verbose:
            print(f"Traceback: {traceback.format_exc()}")
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
