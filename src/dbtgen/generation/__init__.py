from .generator import DocumentGenerator
from .prompt_builder import (
    build_rules_messages,
    build_schema_messages,
    derive_seed_name,
    render_rules_prompt,
    render_schema_prompt,
)
from .prompts import DEFAULT_RULES_PROMPT, DEFAULT_SCHEMA_PROMPT
