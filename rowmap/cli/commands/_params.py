"""
Parameter parsing shared by exec and raw.
"""

from __future__ import annotations

import json
from typing import Any

import click


def parse_param(text: str) -> Any:
    """
    Interpret a command-line parameter.

    ``null`` becomes None, integers and decimals become numbers and a JSON
    array becomes a list (expanded for ``IN ?``). Anything else stays text.
    """
    if text.lower() == "null":
        return None
    if text.startswith("["):
        try:
            values = json.loads(text)
        except json.JSONDecodeError as e:
            raise click.BadParameter(f"invalid list parameter {text!r}: {e}") from e
        if not isinstance(values, list):
            raise click.BadParameter(f"invalid list parameter {text!r}")
        return values
    try:
        return int(text)
    except ValueError:
        pass
    try:
        return float(text)
    except ValueError:
        return text


def parse_params(values: tuple[str, ...]) -> list[Any]:
    return [parse_param(v) for v in values]
