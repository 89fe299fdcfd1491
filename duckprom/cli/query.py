"""Remote read query command.

Sends a Prometheus remote read request to a running adapter (or any other
remote read endpoint) and prints the series it returns.
"""

import re
import time
from typing import Optional

import httpx
import typer

from duckprom import __version__
from duckprom.cli.output import console, print_error, print_info, print_json, print_table
from duckprom.exceptions import DecodeError
from duckprom.logging_config import get_logger
from duckprom.models import Matcher, MatchType, ReadQuery
from duckprom.query.aggregator import signature
from duckprom.remote import CONTENT_TYPE, RemoteCodec

_MATCHER = re.compile(r"^\s*([a-zA-Z_][a-zA-Z0-9_]*)\s*(=~|!~|!=|=)\s*(.*?)\s*$")

_OPERATORS = {
    "=": MatchType.EQUAL,
    "!=": MatchType.NOT_EQUAL,
    "=~": MatchType.REGEX_MATCH,
    "!~": MatchType.REGEX_NOT_MATCH,
}

DEFAULT_WINDOW_MS = 60 * 60 * 1000

logger = get_logger(__name__)


def parse_matcher(expression: str) -> Matcher:
    """
    Parse a PromQL-style label matcher such as ``job="api"`` or ``env=~prod.*``.

    Raises:
        typer.BadParameter: If the expression is not a matcher
    """
    match = _MATCHER.match(expression)
    if match is None:
        raise typer.BadParameter(
            f"Invalid matcher {expression!r}, expected name=value, name!=value, "
            "name=~regex or name!~regex"
        )
    name, operator, value = match.groups()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'":
        value = value[1:-1]
    return Matcher(name=name, kind=_OPERATORS[operator], value=value)


def query(
    url: str = typer.Argument(..., help="Remote read endpoint, e.g. http://localhost:9201/read"),
    matchers: list[str] = typer.Option(
        [],
        "--match",
        "-m",
        help="Label matcher, repeatable: job=api, env!=dev, env=~prod.*, env!~test.*",
    ),
    start: Optional[int] = typer.Option(
        None,
        "--start",
        help="Start of the range in milliseconds (defaults to one hour before --end)",
    ),
    end: Optional[int] = typer.Option(
        None,
        "--end",
        help="End of the range in milliseconds (defaults to now)",
    ),
    output: str = typer.Option(
        "table",
        "--output",
        "-o",
        help="Output format: table, json",
    ),
    timeout: float = typer.Option(30.0, "--timeout", help="Request timeout in seconds"),
) -> None:
    """
    Run a remote read query and print the returned series.

    Examples:
        duckprom query http://localhost:9201/read -m job=api

        duckprom query http://localhost:9201/read -m 'env=~prod.*' --start 0 --end 2000
    """
    if output not in ("table", "json"):
        print_error(f"Invalid output format: {output}")
        raise typer.Exit(1)

    end_ms = end if end is not None else int(time.time() * 1000)
    start_ms = start if start is not None else end_ms - DEFAULT_WINDOW_MS
    read_query = ReadQuery(
        start_ms=start_ms,
        end_ms=end_ms,
        matchers=tuple(parse_matcher(m) for m in matchers),
    )

    headers = {
        "Content-Type": CONTENT_TYPE,
        "Content-Encoding": "snappy",
        "X-Prometheus-Remote-Read-Version": "0.1.0",
        "User-Agent": f"duckprom/{__version__}",
    }
    logger.debug(
        "remote_read_request",
        url=url,
        matchers=len(read_query.matchers),
        start_ms=read_query.start_ms,
        end_ms=read_query.end_ms,
    )

    try:
        response = httpx.post(
            url,
            content=RemoteCodec.encode_read_request([read_query]),
            headers=headers,
            timeout=timeout,
        )
        response.raise_for_status()
    except httpx.HTTPStatusError as e:
        print_error(f"Read failed with HTTP {e.response.status_code}: {e.response.text}")
        raise typer.Exit(1)
    except httpx.HTTPError as e:
        print_error(f"Request to {url} failed: {e}")
        raise typer.Exit(1)

    try:
        series = RemoteCodec.decode_read_response(response.content)
    except DecodeError as e:
        print_error(f"Could not decode read response: {e.message}")
        raise typer.Exit(1)

    if output == "json":
        print_json(
            [
                {
                    "labels": ts.labels,
                    "samples": [[s.timestamp, s.value] for s in ts.samples],
                }
                for ts in series
            ]
        )
        return

    if not series:
        print_info("No series matched")
        return

    rows = [
        {
            "Series": signature(ts.labels),
            "Samples": len(ts.samples),
            "First": ts.samples[0].timestamp if ts.samples else "",
            "Last": ts.samples[-1].timestamp if ts.samples else "",
            "Last Value": ts.samples[-1].value if ts.samples else "",
        }
        for ts in series
    ]
    print_table(rows, title=f"{len(series)} series")
    console.print(
        f"[dim]{sum(len(ts.samples) for ts in series)} samples "
        f"in [{start_ms}, {end_ms}][/dim]"
    )
