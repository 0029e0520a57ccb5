from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple, Type

from pydantic import BaseModel, ValidationError

from .errors import InvalidPatchField, MalformedOutput
from .merge import merge
from ..spec.document_models import (
    FieldKind,
    Resume,
    as_text,
    field_kinds,
    nested_model,
)
from ..utils.logger import JSONLLogger

Patch = Dict[str, Any]


@dataclass
class ValidationResult:
    patch: Patch
    warnings: List[InvalidPatchField] = field(default_factory=list)


class PatchValidator:
    """
    Normalises an untrusted partial document before it may touch canonical state.

    Field-level problems never fail the whole patch: the offending field (or list
    element) is dropped and reported as an InvalidPatchField warning.
    """

    def __init__(
        self,
        document_model: Type[BaseModel] = Resume,
        logger: Optional[JSONLLogger] = None,
    ):
        self.document_model = document_model
        self.kinds = field_kinds(document_model)
        self.set_like = set(getattr(document_model, "set_like_fields", ()))
        self.logger = logger

    def validate(self, raw: Any) -> ValidationResult:
        if not isinstance(raw, Mapping):
            raise MalformedOutput(
                f"patch must be an object, got {type(raw).__name__}"
            )

        result = ValidationResult(patch={})
        for key, value in raw.items():
            try:
                result.patch[key] = self.validate_field(key, value, result.warnings)
            except InvalidPatchField as e:
                result.warnings.append(e)

        if result.warnings and self.logger is not None:
            self.logger.log_patch_warnings(
                document=self.document_model.__name__,
                warnings=[w.to_dict() for w in result.warnings],
            )
        return result

    def validate_field(self, key: str, value: Any, warnings: List[InvalidPatchField]) -> Any:
        kind = self.kinds.get(key)
        if kind is None:
            raise InvalidPatchField(key, "unknown field")

        if kind is FieldKind.TEXT:
            return self._text(key, value)
        if kind is FieldKind.OBJECT:
            return self._object(key, value, warnings)
        if kind is FieldKind.TEXT_LIST:
            return self._text_list(key, value, warnings)
        return self._records(key, value, warnings)

    def coerce(self, raw: Any) -> Tuple[BaseModel, List[InvalidPatchField]]:
        """Turn a stored or client-supplied document into a total, valid one."""
        zero = self.document_model()
        if not isinstance(raw, Mapping):
            return zero, [InvalidPatchField("*", "document is not an object")]
        result = self.validate(raw)
        return merge(zero, result.patch), result.warnings

    # ------------------------------------------------------------------
    # Per-kind checks
    # ------------------------------------------------------------------

    @staticmethod
    def _text(key: str, value: Any) -> str:
        try:
            return as_text(value)
        except ValueError as e:
            raise InvalidPatchField(key, str(e)) from e

    def _object(self, key: str, value: Any, warnings: List[InvalidPatchField]) -> Dict[str, str]:
        if not isinstance(value, Mapping):
            raise InvalidPatchField(key, f"expected an object, got {type(value).__name__}")

        sub_fields = nested_model(self.document_model, key).model_fields
        partial = {}
        for sub_key, sub_value in value.items():
            path = f"{key}.{sub_key}"
            if sub_key not in sub_fields:
                warnings.append(InvalidPatchField(path, "unknown field"))
                continue
            if sub_value is None:
                # Optional contact entries come back as null when the model has nothing
                partial[sub_key] = ""
                continue
            try:
                partial[sub_key] = self._text(path, sub_value)
            except InvalidPatchField as e:
                warnings.append(e)
        return partial

    def _text_list(self, key: str, value: Any, warnings: List[InvalidPatchField]) -> List[str]:
        if isinstance(value, str):
            value = [value]
        if not isinstance(value, list):
            raise InvalidPatchField(key, f"expected a list of strings, got {type(value).__name__}")

        items = []
        for i, item in enumerate(value):
            try:
                items.append(self._text(f"{key}[{i}]", item))
            except InvalidPatchField as e:
                warnings.append(e)

        if value and not items:
            raise InvalidPatchField(key, "no valid entries")

        if key in self.set_like:
            items = list(dict.fromkeys(items))
        return items

    def _records(self, key: str, value: Any, warnings: List[InvalidPatchField]) -> List[Dict[str, Any]]:
        if isinstance(value, Mapping):
            value = [value]
        if not isinstance(value, list):
            raise InvalidPatchField(key, f"expected a list of objects, got {type(value).__name__}")

        record_model = nested_model(self.document_model, key)
        records = []
        for i, item in enumerate(value):
            path = f"{key}[{i}]"
            if not isinstance(item, Mapping):
                warnings.append(InvalidPatchField(path, f"expected an object, got {type(item).__name__}"))
                continue
            try:
                records.append(record_model.model_validate(item).model_dump())
            except ValidationError as e:
                problems = ", ".join(
                    f"{'.'.join(str(p) for p in err['loc'])} {err['msg']}".strip()
                    for err in e.errors()
                )
                warnings.append(InvalidPatchField(path, problems))

        if value and not records:
            raise InvalidPatchField(key, "no valid entries")
        return records
