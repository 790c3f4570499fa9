"""JSON rendering for hydra-cli command output."""

from __future__ import annotations

import json
from typing import Any, TextIO


def parse_json_or_raw(text: str) -> Any:
    try:
        return json.loads(text)
    except (TypeError, ValueError):
        return text


def render_json(value: Any, stdout: TextIO) -> None:
    """Pretty-print ``value``; strings that are not JSON are printed as-is."""
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except ValueError:
            print(value, file=stdout)
            return
    print(json.dumps(value, indent=2, ensure_ascii=False), file=stdout)
