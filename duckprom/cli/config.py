"""Configuration management CLI commands."""

import json
from typing import Any, Optional

import typer
import yaml
from rich.console import Console
from rich.syntax import Syntax
from rich.table import Table

from duckprom.cli.output import print_error, print_info, print_panel
from duckprom.config import YAML_FIELDS, Settings, get_settings
from duckprom.logging_config import get_logger

app = typer.Typer(help="Configuration management")
console = Console()
logger = get_logger(__name__)


@app.command("show")
def show_config(
    section: Optional[str] = typer.Option(
        None,
        "--section",
        "-s",
        help="Show specific section: server, storage, duckdb, limits, metrics, logging",
    ),
    format: str = typer.Option(
        "table",
        "--format",
        "-f",
        help="Output format: table, yaml, json",
    ),
) -> None:
    """
    Show current configuration.

    Values are shown in the same sections as config.yaml, after environment
    variables and the config file have been applied.
    """
    if format not in ("table", "yaml", "json"):
        print_error(f"Invalid output format: {format}")
        raise typer.Exit(1)

    try:
        config_dict = settings_to_dict(get_settings())
    except Exception as e:
        logger.exception("config_load_failed")
        print_error(f"Failed to load configuration: {str(e)}")
        raise typer.Exit(1)

    if section:
        if section not in config_dict:
            print_error(f"Unknown section: {section}")
            print_info(f"Available sections: {', '.join(config_dict)}")
            raise typer.Exit(1)
        config_dict = {section: config_dict[section]}

    if format == "yaml":
        config_yaml = yaml.dump(config_dict, default_flow_style=False, sort_keys=False)
        console.print(Syntax(config_yaml, "yaml", theme="monokai", line_numbers=True))
    elif format == "json":
        console.print(
            Syntax(json.dumps(config_dict, indent=2), "json", theme="monokai")
        )
    else:
        _show_config_table(config_dict)


def settings_to_dict(settings: Settings) -> dict[str, dict[str, Any]]:
    """Nest settings into config.yaml sections."""
    return {
        section: {
            yaml_key: getattr(settings, field_name)
            for yaml_key, field_name in fields.items()
        }
        for section, fields in YAML_FIELDS.items()
    }


def _show_config_table(config_dict: dict[str, dict[str, Any]]) -> None:
    console.print()
    print_panel("duckprom Configuration", border_style="cyan")
    console.print()

    for section_name, values in config_dict.items():
        table = Table(
            title=f"{section_name.capitalize()} Settings",
            show_header=True,
            header_style="bold cyan",
        )
        table.add_column("Setting", style="cyan", no_wrap=True)
        table.add_column("Value", style="white")
        for key, value in values.items():
            table.add_row(key, str(value))
        console.print(table)
        console.print()
