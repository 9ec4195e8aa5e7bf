"""Normalization of placed-field payloads.

Uploads arrive either as the legacy single-coordinate object
(``{"page", "xRatio", "yRatio", "width", "height"}``) or as a list of typed
fields. Both are turned into one ``list[SigningField]`` here so nothing
downstream has to care which shape the client sent.
"""

import json
from typing import Any, Iterable, List, Union

from pydantic import ValidationError as PydanticValidationError

from docsign.schemas.signing import FieldKind, LegacyCoordinates, SigningField
from docsign.utils.exceptions import ValidationError


def _describe_errors(exc: PydanticValidationError) -> List[dict]:
    return [
        {"loc": [str(part) for part in err.get("loc", ())], "msg": err.get("msg", "")}
        for err in exc.errors()
    ]


def parse_field_payload(raw: Union[str, bytes, dict, list, None], field_name: str = "fields") -> List[SigningField]:
    """Parse a JSON field payload (legacy object or list) into SigningFields."""
    if raw is None or (isinstance(raw, (str, bytes)) and not raw.strip()):
        raise ValidationError("Missing field placement data.", field=field_name)

    data: Any = raw
    if isinstance(raw, (str, bytes)):
        try:
            data = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError):
            raise ValidationError("Invalid coordinates format.", field=field_name)

    if isinstance(data, dict):
        try:
            return [LegacyCoordinates.model_validate(data).to_field()]
        except PydanticValidationError as exc:
            raise ValidationError(
                "Invalid coordinates format.",
                field=field_name,
                details={"errors": _describe_errors(exc)},
            )

    if isinstance(data, list):
        fields: List[SigningField] = []
        for index, item in enumerate(data):
            if not isinstance(item, dict):
                raise ValidationError(
                    f"Field {index} must be an object.",
                    field=field_name,
                    details={"index": index},
                )
            try:
                fields.append(SigningField.model_validate(item))
            except PydanticValidationError as exc:
                raise ValidationError(
                    f"Invalid geometry for field {index}.",
                    field=field_name,
                    details={"index": index, "errors": _describe_errors(exc)},
                )
        return fields

    raise ValidationError("Field placement data must be an object or a list.", field=field_name)


def require_signature_field(fields: Iterable[SigningField], field_name: str = "fields") -> None:
    """A document with no signature field cannot be signed."""
    if not any(f.kind == FieldKind.SIGNATURE for f in fields):
        raise ValidationError("At least one signature field is required.", field=field_name)


def signature_fields(fields: Iterable[SigningField]) -> List[SigningField]:
    return [f for f in fields if f.kind == FieldKind.SIGNATURE]


def load_stored_fields(stored: Any) -> List[SigningField]:
    """Rehydrate the JSON column of a SigningSession."""
    if not stored:
        return []
    return [SigningField.model_validate(item) for item in stored]


def dump_fields(fields: Iterable[SigningField]) -> List[dict]:
    return [f.to_storage() for f in fields]
