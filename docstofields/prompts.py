from __future__ import annotations

import re
from typing import Iterable, Optional, Sequence

from .models import FieldSpec, LabelSpec

DOCUMENTS_TOKEN = "{input_documents}"
FIELDS_TOKEN = "{fields}"
LABELS_TOKEN = "{labels}"
_TOKEN_PATTERN = re.compile(r"\{(?:input_documents|fields|labels)\}")

DEFAULT_SYSTEM_PROMPT = (
    "You are a helpful assistant that extracts fields from documents.\n"
    "You only output results in JSON only."
)

DEFAULT_EXTRACTION_PROMPT = """Documents:
{input_documents}

Extract the following fields from the document:
{fields}

Results in JSON only"""

DEFAULT_CLASSIFIER_PROMPT = """Documents:
{input_documents}

Classify the document with one of the following labels:
{labels}

Result as document_label in JSON."""

DEFAULT_FIELD_DESCRIPTION = "Extract this field"


def render_documents(documents: Iterable[tuple[str, str]]) -> str:
    return "\n\n".join(
        f"Document {index} ({name}):\n{text}" for index, (name, text) in enumerate(documents, start=1)
    )


def render_fields(fields: Sequence[FieldSpec]) -> str:
    return "\n".join(f"- {f.name}: {f.description or DEFAULT_FIELD_DESCRIPTION}" for f in fields)


def render_labels(labels: Sequence[LabelSpec]) -> str:
    return "\n".join(f"- {label.name}: {label.description or ''}" for label in labels)


def render_instruction(
    template: str,
    documents: Iterable[tuple[str, str]],
    fields: Optional[Sequence[FieldSpec]] = None,
    labels: Optional[Sequence[LabelSpec]] = None,
) -> str:
    """Substitute the placeholder tokens of an instruction template.

    Only the first occurrence of each token is replaced. ``{fields}`` is filled
    when fields are given, ``{labels}`` when labels are given; tokens with
    nothing to substitute stay in the text verbatim.
    """
    replacements = {DOCUMENTS_TOKEN: render_documents(documents)}
    if fields:
        replacements[FIELDS_TOKEN] = render_fields(fields)
    if labels:
        replacements[LABELS_TOKEN] = render_labels(labels)

    seen: set[str] = set()

    def _substitute(match: re.Match) -> str:
        token = match.group(0)
        if token in seen or token not in replacements:
            return token
        seen.add(token)
        return replacements[token]

    # single pass so document text containing a token is never substituted
    return _TOKEN_PATTERN.sub(_substitute, template)
