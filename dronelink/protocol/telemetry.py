# dronelink/protocol/telemetry.py
from __future__ import annotations

from typing import Dict


def parse_state(text: str) -> Dict[str, str]:
    """
    Decode one telemetry string: 'key1:value1;key2:value2;...;'

    - segments are split on ';', then on the first ':'
    - keys and values are trimmed
    - empty segments and segments missing a key or value are skipped
    - no schema: unknown keys pass through as strings
    """
    state: Dict[str, str] = {}
    for segment in text.strip().split(";"):
        if not segment:
            continue
        key, sep, value = segment.partition(":")
        key, value = key.strip(), value.strip()
        if not sep or not key or not value:
            continue
        state[key] = value
    return state
