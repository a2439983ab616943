# ============================================================================
# src/medical_reconciliation/constants/keywords.py
# ============================================================================
"""
Keyword lists and patterns used to classify names and reject noise.
"""

import re

# Method/technology tokens printed next to results ("Vitamin D  HPLC  32 ng/mL")
METHOD_TOKENS = frozenset({
    "PHOTOMETRY",
    "CALCULATED",
    "CALC",
    "C.M.I.",
    "CMI",
    "ECLIA",
    "ELISA",
    "CLIA",
    "HPLC",
    "ICP-MS",
    "ICPMS",
    "COLORIMETRY",
    "TURBIDIMETRY",
    "NEPHELOMETRY",
    "IMMUNOASSAY",
    "ASSAY",
    "METHOD",
    "TECHNOLOGY",
})

# Stripped from canonical keys to form merge keys; longer tokens first so
# "eclia" is removed whole rather than leaving "e" behind after "clia".
METHOD_KEY_FRAGMENTS = (
    "turbidimetry",
    "colorimetry",
    "photometry",
    "calculated",
    "icpms",
    "eclia",
    "elisa",
    "hplc",
    "clia",
)

HEART_KEYWORDS = (
    "CHOLESTEROL",
    "TRIGLYCER",
    "HDL",
    "LDL",
    "VLDL",
    "NON-HDL",
    "NON HDL",
    "APOLIPOPROTEIN",
    "APO-",
    "APO ",
    "LIPOPROTEIN",
    "LP(A)",
    "LP-PLA2",
    "HS-CRP",
    "HS CRP",
    "CRP",
    "HOMOCYSTEINE",
    "TROPONIN",
    "NT-PROBNP",
    "NT PROBNP",
    "BNP",
    "CK-MB",
    "CK MB",
    "CKMB",
    "CREATINE KINASE",
    "D-DIMER",
    "D DIMER",
)

URINE_KEYWORDS = ("URINE", "URINARY")

# Body fluids, specimens and substances that are neither blood nor urine panels
OTHER_FLUID_KEYWORDS = (
    "STOOL",
    "SPUTUM",
    "SEMEN",
    "SWAB",
    "VAGINAL",
    "CERVICAL",
    "URETHRAL",
    "THROAT",
    "NASAL",
    "SALIVA",
    "CSF",
    "CEREBROSPINAL",
    "SYNOVIAL",
    "PLEURAL",
    "ASCITIC",
    "PERITONEAL",
    "PERICARDIAL",
    "AMNIOTIC",
    "TISSUE",
    "BIOPSY",
    "SMEAR",
    "PAP",
    "KOH",
    "HANGING DROP",
    "MICROSCOPY",
    "CULTURE",
    "PCR",
    "ALCOHOL",
    "OPIATE",
    "OPIATES",
    "CANNAB",
    "TETRAHYDROCANNABINOL",
    "BENZODIAZEP",
    "BARBITUR",
    "METHAMPHET",
    "AMPHET",
    "MDMA",
    "COCAINE",
    "MORPHINE",
    "METHADONE",
    "KETAMINE",
    "PHENCYCLIDINE",
    "NICOTINE",
)

# Postal address detection: a keyword plus a comma or a 5-6 digit PIN/ZIP
ADDRESS_KEYWORD_PATTERN = re.compile(
    r"\b(floor|flr|block|layout|phase|road|rd\.?|street|st\.?|sector|nagar|nag\.?|"
    r"jp\s*nagar|bangalore|bengaluru|karnataka|india|pincode|pin\s*code|zip|district|state)\b",
    re.IGNORECASE,
)
POSTAL_CODE_PATTERN = re.compile(r"\b[0-9]{5,6}\b")

# Qualitative results accepted as values
QUALITATIVE_VALUE_PATTERN = re.compile(
    r"\b(absent|present|nil|negative|positive|trace|reactive|non\s*reactive|detected|not\s*detected)\b",
    re.IGNORECASE,
)

# Names that indicate a genuine lab parameter even without dictionary membership
MEDICAL_NAME_PATTERN = re.compile(
    r"\b(glucose|sugar|hba1c|hemoglobin|haemoglobin|cholesterol|triglycer\w*|ldl|hdl|vldl|bilirubin|"
    r"sgot|sgpt|ast|alt|alkaline|alp|urea|creatinine|uric|sodium|potassium|chloride|calcium|"
    r"magnesium|phosph\w*|tsh|t3|t4|vitamin|b12|d3|ferritin|iron|crp|esr|cbc|wbc|rbc|platelets?|"
    r"neutrophils?|lymphocytes?|monocytes?|eosinophils?|basophils?|urine|urin\w*|albumin|protein|"
    r"globulin|a/g|ratio|hct|mcv|mch|mchc|rdw)\b",
    re.IGNORECASE,
)

# Demographic/administrative labels that look like "Label: value" rows
NON_TEST_LABEL_PATTERN = re.compile(
    r"^\s*(age|sex|gender|name|patient\s*name|dob|date|time|date\s*of\s*birth|phone|mobile|email|"
    r"ref\.?\s*by|referred\s*by|ref\s*doctor|sample\s*(id|no\.?|number)|barcode|bill\s*no\.?|"
    r"accession(\s*no\.?)?|uhid|patient\s*id|lab\s*no\.?|reg\.?\s*no\.?|registration\s*no\.?|"
    r"collected(\s*on)?|received(\s*on)?|reported(\s*on)?|page)\s*$",
    re.IGNORECASE,
)
