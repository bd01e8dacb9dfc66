from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Union

from .models import ClassifierSpec, FieldSpec, LabelSpec

NOT_FOUND_LABEL = "Not found"


def not_found() -> Dict[str, Any]:
    return {"fields": [], "label": NOT_FOUND_LABEL}


class FieldModel:
    """Declared fields to extract and the classifiers used for labelling."""

    def __init__(self, fields: Optional[List[FieldSpec]] = None) -> None:
        self.fields: List[FieldSpec] = list(fields or [])
        self.classifiers: Dict[str, ClassifierSpec] = {}
        self.labels: List[LabelSpec] = []

    def __len__(self) -> int:
        return len(self.fields)

    def add_field(self, field: Union[FieldSpec, Mapping[str, Any]]) -> None:
        if not isinstance(field, FieldSpec):
            field = FieldSpec.model_validate(field)
        self.fields.append(field)

    def clear_fields(self) -> None:
        self.fields = []

    def set_classifiers(self, classifiers: Mapping[str, Union[ClassifierSpec, Mapping[str, Any]]]) -> None:
        # stored as given; the key is the label, nothing is added to the spec
        resolved: Dict[str, ClassifierSpec] = {
            key: value if isinstance(value, ClassifierSpec) else ClassifierSpec.model_validate(dict(value))
            for key, value in classifiers.items()
        }
        self.classifiers = resolved
        self.labels = [
            LabelSpec(name=key, description=spec.description) for key, spec in resolved.items()
        ]

    def lookup_classifier(self, label: str) -> Optional[ClassifierSpec]:
        """Find the classifier for a model-produced label.

        Matching is a case-insensitive substring test in either direction, so
        ``"invoice"`` and ``"INVOICE-TYPE"`` both resolve the ``"Invoice"`` key.
        The first key in insertion order wins.
        """
        needle = label.strip().lower()
        if not needle:
            return None
        for key, spec in self.classifiers.items():
            haystack = key.strip().lower()
            if not haystack:
                continue
            if needle in haystack or haystack in needle:
                return spec
        return None

    def classifiers_payload(self) -> Dict[str, Dict[str, Any]]:
        return {key: spec.model_dump(exclude_none=True) for key, spec in self.classifiers.items()}
