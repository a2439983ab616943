# ============================================================================
# src/medical_reconciliation/extractors/json_recovery.py
# ============================================================================
"""
JSON Recovery

Model output is frequently wrapped in commentary or cut off by token limits.
Recovery tiers, in order:

1. DIRECT        strict parse of the whole text
2. SCANNED       strict parse of the first balanced {...} / [...] block
3. LOCAL_REPAIR  json_repair over the text (optional)
4. AI_REPAIR     ask the repair collaborator, then tiers 1-2 on its answer

The method that succeeded is reported so callers can tell "recovered via
repair" from "parsed cleanly".

Floats are parsed as their source text so values are never reformatted.
"""

import json
import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterator, Optional

from json_repair import repair_json

from ..config import extraction_settings
from ..utils.exceptions import JSONRecoveryError, RepairError
from .prompts import ARRAY_SCHEMA_HINT, OBJECT_SCHEMA_HINT

logger = logging.getLogger(__name__)

_OPENERS = ("{", "[")
_CLOSERS = ("}", "]")
_MAX_SCAN_STARTS = 64

_FLOAT_LITERAL = re.compile(r"-?\d+(?:\.\d+(?:[eE][+-]?\d+)?|[eE][+-]?\d+)(?![\w.])")
_VALUE_PREFIXES = (":", ",", "[")


class RecoveryMethod(str, Enum):
    DIRECT = "direct"
    SCANNED = "scanned"
    LOCAL_REPAIR = "local_repair"
    AI_REPAIR = "ai_repair"
    FAILED = "failed"


@dataclass
class RecoveryOutcome:
    data: Any
    method: RecoveryMethod
    raw_preview: str = ""

    @property
    def ok(self) -> bool:
        return self.method != RecoveryMethod.FAILED

    @property
    def repaired(self) -> bool:
        return self.method in (RecoveryMethod.LOCAL_REPAIR, RecoveryMethod.AI_REPAIR)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "method": self.method.value,
            "rawPreview": self.raw_preview,
        }


def strict_loads(text: str) -> Any:
    """json.loads keeping float literals as strings."""
    return json.loads(text, parse_float=str)


def _accepts(data: Any, kind: Optional[str]) -> bool:
    if kind == "object":
        return isinstance(data, dict)
    if kind == "array":
        return isinstance(data, list)
    return isinstance(data, (dict, list))


def _block_end(text: str, start: int) -> Optional[int]:
    """Index of the bracket closing the one at `start`, ignoring string contents."""
    depth = 0
    in_string = False
    escaped = False
    for i in range(start, len(text)):
        char = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char in _OPENERS:
            depth += 1
        elif char in _CLOSERS:
            depth -= 1
            if depth == 0:
                return i
    return None


def iter_balanced_blocks(text: str, opener: str) -> Iterator[str]:
    """
    Balanced blocks beginning at successive `opener` positions.

    Stops at the first block that never closes (nothing after it can close
    either) and after a bounded number of attempts.
    """
    start = text.find(opener)
    attempts = 0
    while start != -1 and attempts < _MAX_SCAN_STARTS:
        end = _block_end(text, start)
        if end is None:
            return
        yield text[start:end + 1]
        attempts += 1
        start = text.find(opener, start + 1)


def find_balanced_block(text: str, opener: str) -> Optional[str]:
    """First balanced block starting at `opener`, or None when it never closes."""
    return next(iter_balanced_blocks(text, opener), None)


def parse_direct(text: str, kind: Optional[str] = None) -> Optional[Any]:
    try:
        data = strict_loads(text.strip())
    except (json.JSONDecodeError, ValueError):
        return None
    return data if _accepts(data, kind) else None


def parse_scanned(text: str, kind: Optional[str] = None) -> Optional[Any]:
    if kind == "object":
        openers = ("{",)
    elif kind == "array":
        openers = ("[",)
    else:
        # Whichever appears first wins, so a top-level array is not mistaken
        # for its first element
        openers = tuple(sorted(("{", "["), key=lambda o: (text.find(o) == -1, text.find(o))))

    for opener in openers:
        for block in iter_balanced_blocks(text, opener):
            try:
                data = strict_loads(block)
            except (json.JSONDecodeError, ValueError):
                continue
            if _accepts(data, kind):
                return data
    return None


def quote_float_literals(text: str) -> str:
    """
    Quote bare float literals in value position so a repair pass keeps
    their source text ("1.10" stays "1.10"). String contents and any
    commentary before the first bracket are left alone.
    """
    starts = [i for i in (text.find("{"), text.find("[")) if i != -1]
    if not starts:
        return text
    start = min(starts)

    out = [text[:start]]
    in_string = False
    escaped = False
    previous = ""
    i = start
    while i < len(text):
        char = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
        elif char == '"':
            in_string = True
        elif previous in _VALUE_PREFIXES:
            match = _FLOAT_LITERAL.match(text, i)
            if match:
                out.append(f'"{match.group(0)}"')
                previous = '"'
                i = match.end()
                continue
        out.append(char)
        if not char.isspace():
            previous = char
        i += 1
    return "".join(out)


def parse_local_repair(text: str, kind: Optional[str] = None) -> Optional[Any]:
    """json_repair pass; accepted only for a non-empty object/array."""
    try:
        # json_repair turns floats into Python floats; quoting first keeps "1.10"
        repaired = repair_json(quote_float_literals(text), return_objects=True)
    except Exception as e:
        logger.debug(f"json_repair failed: {e}")
        return None
    if not repaired or not _accepts(repaired, kind):
        return None
    return repaired


def _parse_clean(text: str, kind: Optional[str]):
    data = parse_direct(text, kind)
    if data is not None:
        return data, RecoveryMethod.DIRECT
    data = parse_scanned(text, kind)
    if data is not None:
        return data, RecoveryMethod.SCANNED
    return None, RecoveryMethod.FAILED


def parse_json_object_loose(text: str) -> Optional[Dict[str, Any]]:
    """Object from model output via direct parse or scan, else None."""
    if not text or not text.strip():
        return None
    data, _ = _parse_clean(text, "object")
    return data


def parse_json_array_loose(text: str) -> Optional[list]:
    """Array from model output via direct parse or scan, else None."""
    if not text or not text.strip():
        return None
    data, _ = _parse_clean(text, "array")
    return data


def recover_json(text: str, use_local_repair: bool = True) -> Optional[Any]:
    """Object or array, whichever opens first; local repair as a last step."""
    if not text or not text.strip():
        return None
    data, _ = _parse_clean(text, None)
    if data is None and use_local_repair:
        data = parse_local_repair(text)
    return data


class JSONRecovery:
    """
    Tiered JSON recovery with an optional repair collaborator.

    The repair collaborator is anything with
    `async repair(raw_text, schema_hint) -> str`.
    """

    def __init__(self, repair_client=None, config: Optional[Dict[str, Any]] = None):
        self.repair_client = repair_client
        self.config = config or {}
        self.enable_ai_repair = self.config.get(
            "enable_ai_repair", extraction_settings.ENABLE_AI_REPAIR
        )
        self.use_local_repair = self.config.get(
            "use_local_json_repair", extraction_settings.USE_LOCAL_JSON_REPAIR
        )
        self.preview_chars = self.config.get(
            "raw_preview_chars", extraction_settings.RAW_PREVIEW_CHARS
        )

    def _preview(self, text: str) -> str:
        return (text or "")[:self.preview_chars]

    def recover_local(self, text: str) -> RecoveryOutcome:
        """Tiers 1-3 only; never calls out."""
        if not text or not text.strip():
            return RecoveryOutcome(None, RecoveryMethod.FAILED, "")

        data, method = _parse_clean(text, None)
        if data is not None:
            return RecoveryOutcome(data, method, self._preview(text))

        if self.use_local_repair:
            data = parse_local_repair(text)
            if data is not None:
                logger.info("Recovered model output with local JSON repair")
                return RecoveryOutcome(data, RecoveryMethod.LOCAL_REPAIR, self._preview(text))

        return RecoveryOutcome(None, RecoveryMethod.FAILED, self._preview(text))

    async def recover(self, text: str) -> RecoveryOutcome:
        """All tiers; the AI repair call is made only when local tiers fail."""
        outcome = self.recover_local(text)
        if outcome.ok or not text or not text.strip():
            return outcome

        if not self.enable_ai_repair or self.repair_client is None:
            return outcome

        try:
            data = await self._ai_repair(text)
        except JSONRecoveryError as e:
            logger.warning(f"JSON repair failed: {e}")
            return outcome

        logger.info("Recovered model output with AI repair")
        return RecoveryOutcome(data, RecoveryMethod.AI_REPAIR, self._preview(text))

    async def _ai_repair(self, text: str) -> Any:
        """Object form first, then array form."""
        for kind, hint in (("object", OBJECT_SCHEMA_HINT), ("array", ARRAY_SCHEMA_HINT)):
            try:
                repaired = await self.repair_client.repair(text, hint)
            except Exception as e:
                raise RepairError(f"Repair collaborator failed: {e}", self._preview(text)) from e

            if not repaired or not str(repaired).strip():
                continue
            data, _ = _parse_clean(str(repaired), kind)
            if data is not None:
                return data

        raise JSONRecoveryError("Repaired output is still not valid JSON", self._preview(text))
