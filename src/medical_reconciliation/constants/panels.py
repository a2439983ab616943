# ============================================================================
# src/medical_reconciliation/constants/panels.py
# ============================================================================
"""
Built-in panels: named, ordered test lists used for panel views and to seed
the heart subset of the dictionary.
"""

HEART_PANEL_TESTS = (
    "High Sensitivity C-Reactive Protein (HS-CRP)",
    "Total Cholesterol",
    "HDL Cholesterol",
    "LDL Cholesterol",
    "Triglycerides",
    "VLDL Cholesterol",
    "Non-HDL Cholesterol",
    "TC / HDL Ratio",
    "Triglyceride / HDL Ratio",
    "LDL / HDL Ratio",
    "HDL / LDL Ratio",
    "Lipoprotein (a) [Lp(a)]",
    "Apolipoprotein A1 (Apo-A1)",
    "Apolipoprotein B (Apo-B)",
    "Apo B / Apo A1 Ratio",
)

URINOGRAM_PANEL_TESTS = (
    "Volume",
    "Colour",
    "Appearance",
    "Specific Gravity",
    "pH",
    "Urinary Protein",
    "Urinary Glucose",
    "Urine Ketone",
    "Urinary Bilirubin",
    "Urobilinogen",
    "Bile Salt",
    "Bile Pigment",
    "Urine Blood",
    "Nitrite",
    "Leucocyte Esterase",
    "Mucus",
    "Red Blood Cells",
    "Urinary Leucocytes (Pus Cells)",
    "Epithelial Cells",
    "Casts",
    "Crystals",
    "Bacteria",
    "Yeast",
    "Parasite",
)

PANELS = {
    "heart": HEART_PANEL_TESTS,
    "urinogram": URINOGRAM_PANEL_TESTS,
}
