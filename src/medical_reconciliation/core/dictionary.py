# ============================================================================
# src/medical_reconciliation/core/dictionary.py
# ============================================================================
"""
Parameter Dictionary

The master list of recognised test names, loaded once per process and never
mutated afterwards. Derived subsets (heart, urine, other fluids, blood) are
computed at construction by keyword classification, and a preferred-name map
resolves every known spelling to the shortest one.

Sources:
- JSON object {"tests": [...]}
- JSON array of names
- Tab-delimited file with a header row, name in a fixed column
"""

import json
import logging
from functools import lru_cache
from pathlib import Path
from types import MappingProxyType
from typing import Dict, FrozenSet, Iterable, Iterator, List, Optional, Tuple

from ..config import base_settings
from ..constants.keywords import HEART_KEYWORDS, OTHER_FLUID_KEYWORDS, URINE_KEYWORDS
from ..constants.panels import HEART_PANEL_TESTS
from ..utils.exceptions import DictionaryLoadError
from .canonical import canonical_key, merge_key, unique_test_names

logger = logging.getLogger(__name__)


HEART = "heart"
URINE = "urine"
OTHER = "other"
BLOOD = "blood"


def is_heart_name(name: str) -> bool:
    upper = str(name or "").upper()
    return bool(upper) and any(k in upper for k in HEART_KEYWORDS)


def is_urine_name(name: str) -> bool:
    upper = str(name or "").upper()
    return bool(upper) and any(k in upper for k in URINE_KEYWORDS)


def is_other_fluid_name(name: str) -> bool:
    upper = str(name or "").upper()
    return bool(upper) and any(k in upper for k in OTHER_FLUID_KEYWORDS)


def _shortest_by_key(names: Iterable[str], key_fn) -> Dict[str, str]:
    preferred: Dict[str, str] = {}
    for name in names:
        key = key_fn(name)
        if not key:
            continue
        previous = preferred.get(key)
        if previous is None or len(name) < len(previous):
            preferred[key] = name
    return preferred


class Dictionary:
    """
    Immutable parameter dictionary with derived subsets.

    Read accessors only; build a new instance to change contents.
    """

    def __init__(self, names: Iterable[str]):
        raw = [n.strip() for n in names if isinstance(n, str) and n.strip()]
        self._names: Tuple[str, ...] = tuple(unique_test_names(raw))
        self._canon: FrozenSet[str] = frozenset(canonical_key(n) for n in self._names)
        self._merge: FrozenSet[str] = frozenset(merge_key(n) for n in self._names)

        self._preferred = MappingProxyType(_shortest_by_key(raw, canonical_key))
        self._preferred_by_merge = MappingProxyType(_shortest_by_key(raw, merge_key))

        heart = unique_test_names(
            list(HEART_PANEL_TESTS) + [n for n in self._names if is_heart_name(n)]
        )
        urine = unique_test_names(n for n in self._names if is_urine_name(n))
        heart_canon = frozenset(canonical_key(n) for n in heart)
        urine_canon = frozenset(canonical_key(n) for n in urine)

        other = [
            n for n in self._names
            if canonical_key(n) not in heart_canon
            and canonical_key(n) not in urine_canon
            and is_other_fluid_name(n)
        ]
        other_canon = frozenset(canonical_key(n) for n in other)

        blood = [
            n for n in self._names
            if canonical_key(n) not in heart_canon
            and canonical_key(n) not in urine_canon
            and canonical_key(n) not in other_canon
        ]

        self._subsets = MappingProxyType({
            HEART: tuple(heart),
            URINE: tuple(urine),
            OTHER: tuple(other),
            BLOOD: tuple(blood),
        })
        self._subset_canon = MappingProxyType({
            HEART: heart_canon,
            URINE: urine_canon,
            OTHER: other_canon,
            BLOOD: frozenset(canonical_key(n) for n in blood),
        })

    def __len__(self) -> int:
        return len(self._names)

    def __iter__(self) -> Iterator[str]:
        return iter(self._names)

    def __contains__(self, name: object) -> bool:
        return self.contains(name)

    @property
    def names(self) -> Tuple[str, ...]:
        return self._names

    @property
    def heart_tests(self) -> Tuple[str, ...]:
        return self._subsets[HEART]

    @property
    def urine_tests(self) -> Tuple[str, ...]:
        return self._subsets[URINE]

    @property
    def other_tests(self) -> Tuple[str, ...]:
        return self._subsets[OTHER]

    @property
    def blood_tests(self) -> Tuple[str, ...]:
        return self._subsets[BLOOD]

    def subset(self, kind: str) -> Tuple[str, ...]:
        return self._subsets[kind]

    def contains(self, name: object) -> bool:
        """Membership by canonical key, or by merge key for method-suffixed names"""
        key = canonical_key(name)
        if not key:
            return False
        return key in self._canon or merge_key(name) in self._merge

    def preferred_name(self, name: str) -> str:
        """Shortest dictionary spelling for a known test, else the input"""
        key = canonical_key(name)
        if not key:
            return name
        preferred = self._preferred.get(key)
        if preferred is None:
            preferred = self._preferred_by_merge.get(merge_key(name))
        return preferred or name

    def classify(self, name: str) -> Optional[str]:
        """
        Subset a name belongs to: heart, urine, other or blood.

        Dictionary members use the derived subsets; unknown names fall back
        to keyword classification and never default to blood.
        """
        key = canonical_key(name)
        if not key:
            return None
        for kind in (HEART, URINE, OTHER, BLOOD):
            if key in self._subset_canon[kind]:
                return kind
        if is_heart_name(name):
            return HEART
        if is_urine_name(name):
            return URINE
        if is_other_fluid_name(name):
            return OTHER
        if merge_key(name) in self._merge:
            return BLOOD
        return None


def parse_parameters_text(raw: str, name_column: int = 2) -> List[str]:
    """
    Parse dictionary file contents.

    JSON (object with "tests" or a bare array) is tried first; anything
    that is not JSON is read as tab-delimited with one header row.
    """
    if not raw or not raw.strip():
        return []

    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        parsed = None
    else:
        if isinstance(parsed, dict) and isinstance(parsed.get("tests"), list):
            return unique_test_names(parsed["tests"])
        if isinstance(parsed, list):
            return unique_test_names(parsed)
        raise DictionaryLoadError("JSON dictionary must be an array or an object with a 'tests' array")

    lines = [line.rstrip() for line in raw.splitlines() if line.strip()]
    names = []
    for line in lines[1:]:
        parts = line.split("\t")
        if len(parts) <= name_column:
            continue
        name = parts[name_column].strip()
        if name:
            names.append(name)
    return unique_test_names(names)


def load_parameter_names(path: Path, name_column: int = 2) -> List[str]:
    """Read and parse a dictionary file; raises DictionaryLoadError"""
    path = Path(path)
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise DictionaryLoadError(f"Cannot read parameter dictionary: {e}", path=path) from e

    try:
        return parse_parameters_text(raw, name_column)
    except DictionaryLoadError as e:
        e.path = path
        raise


@lru_cache(maxsize=1)
def get_dictionary() -> Dictionary:
    """
    Process-wide dictionary, built on first use.

    A missing or malformed source is logged and yields an empty dictionary;
    reconciliation still works, only dictionary-based signals are lost.
    """
    path = base_settings.get_parameters_path()
    try:
        names = load_parameter_names(path, base_settings.PARAMETERS_NAME_COLUMN)
    except DictionaryLoadError as e:
        logger.error(f"Parameter dictionary unavailable ({path}): {e}")
        return Dictionary([])

    dictionary = Dictionary(names)
    logger.info(
        f"Loaded parameter dictionary: {len(dictionary)} tests "
        f"(heart={len(dictionary.heart_tests)}, urine={len(dictionary.urine_tests)}, "
        f"other={len(dictionary.other_tests)}, blood={len(dictionary.blood_tests)})"
    )
    return dictionary


def reload_dictionary() -> Dictionary:
    """Drop the cached dictionary and load it again."""
    get_dictionary.cache_clear()
    return get_dictionary()
