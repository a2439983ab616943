# ============================================================================
# src/medical_reconciliation/extractors/prompts.py
# ============================================================================
"""
Extractor Prompt Templates

Provides:
- Schema hints for object and array output
- Extraction prompt (text segment, optionally with page images)
- JSON repair prompt
"""

from dataclasses import dataclass, field
from typing import List


OBJECT_SCHEMA_HINT = (
    '{"tests": [{"testName": string, "value": string|null, "unit": string|null, '
    '"referenceRange": string|null, "status": "LOW"|"HIGH"|"NORMAL"|"ABSENT"|"PRESENT"|null, '
    '"dateAndTime": string|null, "section": string|null, "page": number|null, '
    '"remarks": string|null}]}'
)

ARRAY_SCHEMA_HINT = (
    '[{"testName": string, "value": string|null, "unit": string|null, '
    '"referenceRange": string|null, "status": string|null, "dateAndTime": string|null}]'
)


@dataclass
class PromptTemplate:
    """Prompt template"""
    name: str
    template: str
    required_fields: List[str] = field(default_factory=list)

    def format(self, **kwargs) -> str:
        missing = [f for f in self.required_fields if f not in kwargs]
        if missing:
            raise ValueError(f"Missing required fields: {missing}")
        return self.template.format(**kwargs)


EXTRACTION_TEMPLATE = PromptTemplate(
    name="extraction",
    template="""You extract laboratory test results from medical report text.

Return ONLY JSON matching this schema:
{schema_hint}

Rules:
- One entry per test row. Copy values exactly as printed, including symbols such as < or >.
- Do not round or convert numbers. Do not invent tests that are not in the text.
- Keep the unit and reference range exactly as printed; use null when absent.
- If a test is reported on several dates, emit one entry per date with dateAndTime set.
- Skip patient details, addresses, doctor names, interpretation tables and footnotes.

Report text:
{segment}
""",
    required_fields=["schema_hint", "segment"],
)

IMAGE_EXTRACTION_TEMPLATE = PromptTemplate(
    name="image_extraction",
    template="""You extract laboratory test results from the attached report page images.
The text below was read from the same pages and may help with faint rows.

Return ONLY JSON matching this schema:
{schema_hint}

Rules:
- One entry per test row visible in the images. Copy values exactly as printed.
- Use null for a missing unit or reference range. Set page to the image number, starting at 1.
- Skip patient details, addresses and interpretation tables.

Page text:
{segment}
""",
    required_fields=["schema_hint", "segment"],
)

REPAIR_TEMPLATE = PromptTemplate(
    name="json_repair",
    template="""The text below should be JSON but is invalid or cut off.

Extract the largest valid JSON value from it matching this schema:
{schema_hint}

Drop any incomplete trailing element. Do not add entries that are not present.
Return ONLY the JSON.

Text:
{raw_text}
""",
    required_fields=["schema_hint", "raw_text"],
)


def create_extraction_prompt(segment: str, schema_hint: str = OBJECT_SCHEMA_HINT, has_images: bool = False) -> str:
    template = IMAGE_EXTRACTION_TEMPLATE if has_images else EXTRACTION_TEMPLATE
    return template.format(segment=segment, schema_hint=schema_hint)


def create_repair_prompt(raw_text: str, schema_hint: str = OBJECT_SCHEMA_HINT) -> str:
    return REPAIR_TEMPLATE.format(raw_text=raw_text, schema_hint=schema_hint)
