# ============================================================================
# tests/unit/test_canonical.py
# ============================================================================
"""
Tests for test-name canonicalization
"""

import pytest

from medical_reconciliation.core.canonical import canonical_key, merge_key, unique_test_names


class TestCanonicalKey:
    """Test canonical_key"""

    @pytest.mark.parametrize("name", [
        "HS-CRP",
        "Vitamin D (25-OH)",
        "  Total   Cholesterol ",
        "A/G Ratio",
        "hemoglobin",
    ])
    def test_idempotent(self, name):
        """canon(canon(x)) == canon(x)"""
        once = canonical_key(name)
        assert canonical_key(once) == once

    def test_case_and_punctuation_insensitive(self):
        assert canonical_key("HS-CRP") == canonical_key("hs crp") == "hscrp"
        assert canonical_key("Total Cholesterol") == canonical_key("TOTAL-CHOLESTEROL")

    def test_empty_and_non_string(self):
        assert canonical_key(None) == ""
        assert canonical_key("   ") == ""
        assert canonical_key(42) == ""


class TestMergeKey:
    """Test merge_key"""

    def test_strips_method_fragments(self):
        assert merge_key("Vitamin D (HPLC)") == merge_key("Vitamin D") == "vitamind"
        assert merge_key("Testosterone (ECLIA)") == "testosterone"
        assert merge_key("Lead ICP-MS") == "lead"

    def test_method_only_name_keeps_key(self):
        assert merge_key("ECLIA") == "eclia"

    def test_plain_names_unchanged(self):
        assert merge_key("Calcium") == "calcium"
        assert merge_key("Phosphorus") == "phosphorus"


class TestUniqueTestNames:
    """Test unique_test_names"""

    def test_first_spelling_wins(self):
        names = ["Hemoglobin", "HEMOGLOBIN", " hemoglobin ", "MCV", 5, None, ""]
        assert unique_test_names(names) == ["Hemoglobin", "MCV"]
