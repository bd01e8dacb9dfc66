from __future__ import annotations

from docstofields.models import FieldSpec, LabelSpec
from docstofields.prompts import (
    DEFAULT_CLASSIFIER_PROMPT,
    DEFAULT_EXTRACTION_PROMPT,
    render_fields,
    render_instruction,
)


def test_extraction_template_substitution_is_exact() -> None:
    rendered = render_instruction(
        "Docs:{input_documents} Fields:{fields} Labels:{labels}",
        [("a.pdf", "hi")],
        fields=[FieldSpec(name="x", description="y")],
    )

    assert "Document 1 (a.pdf):\nhi" in rendered
    assert "- x: y" in rendered
    assert "{fields}" not in rendered
    assert "{labels}" in rendered


def test_documents_are_numbered_in_order() -> None:
    rendered = render_instruction("{input_documents}", [("a.pdf", "one"), ("b.pdf", "two")])

    assert rendered == "Document 1 (a.pdf):\none\n\nDocument 2 (b.pdf):\ntwo"


def test_missing_description_defaults() -> None:
    assert render_fields([FieldSpec(name="total")]) == "- total: Extract this field"


def test_classification_fills_labels_only() -> None:
    rendered = render_instruction(
        DEFAULT_CLASSIFIER_PROMPT,
        [("a.pdf", "text")],
        labels=[LabelSpec(name="Invoice", description="A bill"), LabelSpec(name="Other")],
    )

    assert "- Invoice: A bill\n- Other: " in rendered
    assert "{labels}" not in rendered


def test_tokens_inside_document_text_are_not_substituted() -> None:
    rendered = render_instruction(
        DEFAULT_EXTRACTION_PROMPT,
        [("a.pdf", "literal {fields} here")],
        fields=[FieldSpec(name="x")],
    )

    assert "literal {fields} here" in rendered
    assert "- x: Extract this field" in rendered
