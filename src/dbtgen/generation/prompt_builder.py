from __future__ import annotations

import json
import random
import re
from typing import Any, List, Optional, Sequence

from langchain_core.messages import BaseMessage, HumanMessage, SystemMessage

from dbtgen.common.settings import settings
from dbtgen.documents.models import Schema
from dbtgen.files.models import ParsedFile, Sheet
from .prompts import (
    DEFAULT_RULES_PROMPT,
    DEFAULT_SCHEMA_PROMPT,
    RULES_SYSTEM_PROMPT,
    SCHEMA_SYSTEM_PROMPT,
)

UNKNOWN_SEED = "unknown"
_SEED_PREFIX = re.compile(r"^dataset-")
_SEED_EXTENSION = re.compile(r"\.(xlsx|xls|csv)$", re.IGNORECASE)


def _cell(value: Any) -> str:
    if value is None:
        return ""
    return str(value).replace("\t", " ").replace("\n", " ")


def _sample_rows(rows: Sequence[List[Any]], count: int, rng: random.Random) -> List[List[Any]]:
    return rng.sample(list(rows), min(count, len(rows)))


def format_sheet(sheet: Sheet, rows_per_sheet: int, rng: random.Random) -> str:
    """Renders one sheet as headers plus randomly sampled rows in TSV."""
    rows = _sample_rows(sheet.sample_rows, rows_per_sheet, rng)
    tsv = "\n".join("\t".join(_cell(value) for value in row) for row in rows)
    headers = "\t".join(sheet.headers)
    return (
        f"\nSheet: {sheet.name}\n"
        f"Headers: {headers}\n"
        f"Sample Data ({len(rows)} rows):\n"
        f"{tsv}\n"
    )


def render_schema_prompt(
    parsed_file: ParsedFile,
    template: Optional[str] = None,
    rows_per_sheet: Optional[int] = None,
    rng: Optional[random.Random] = None,
) -> str:
    """Fills the schema template with the file's name, type and sampled sheets."""
    template = template or DEFAULT_SCHEMA_PROMPT
    rows_per_sheet = settings.sample_rows_per_sheet if rows_per_sheet is None else rows_per_sheet
    rng = rng or random.Random()

    sheets = "\n".join(format_sheet(sheet, rows_per_sheet, rng) for sheet in parsed_file.sheets)
    return (
        template
        .replace("${fileData.name}", parsed_file.name)
        .replace("${fileData.type}", parsed_file.type or "")
        .replace("${fileData.sheets}", sheets)
    )


def _seed_from(name: str) -> str:
    return _SEED_EXTENSION.sub("", _SEED_PREFIX.sub("", name))


def derive_seed_name(schema: Schema) -> str:
    """Names the dbt seed after the uploaded file, falling back to the first sheet."""
    if schema.file_name:
        return _seed_from(schema.file_name)
    if schema.tables and schema.tables[0].sheet_name:
        return _seed_from(schema.tables[0].sheet_name)
    return UNKNOWN_SEED


def render_rules_prompt(schema: Schema, template: Optional[str] = None) -> str:
    """Fills the rules template with the finalized schema and its seed name."""
    template = template or DEFAULT_RULES_PROMPT
    return (
        template
        .replace("${schemaData}", json.dumps(schema.to_json_dict()))
        .replace("${seedName}", derive_seed_name(schema))
    )


def build_schema_messages(
    parsed_file: ParsedFile,
    template: Optional[str] = None,
    rows_per_sheet: Optional[int] = None,
    rng: Optional[random.Random] = None,
) -> List[BaseMessage]:
    return [
        SystemMessage(content=SCHEMA_SYSTEM_PROMPT),
        HumanMessage(content=render_schema_prompt(parsed_file, template, rows_per_sheet, rng)),
    ]


def build_rules_messages(schema: Schema, template: Optional[str] = None) -> List[BaseMessage]:
    return [
        SystemMessage(content=RULES_SYSTEM_PROMPT),
        HumanMessage(content=render_rules_prompt(schema, template)),
    ]
