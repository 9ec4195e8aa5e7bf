"""
Preset documents that can be sent for signature without an upload.

Presets are declared in a JSON manifest::

    {
      "presets": [
        {
          "id": "non-disclosure-agreement",
          "name": "Non-Disclosure Agreement",
          "description": "NDA contract for staff and clients.",
          "pdf_path": "presets/non-disclosure-agreement.pdf",
          "original_filename": "Non-Disclosure Agreement.pdf",
          "fields": [{"id": "sig-1", "type": "signature", "page": 1, ...}]
        }
      ]
    }

``pdf_path`` is resolved relative to the manifest's directory.
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from docsign.config import settings
from docsign.schemas.signing import SigningField
from docsign.utils.exceptions import FileOperationError, ValidationError
from docsign.utils.field_parsing import parse_field_payload

logger = logging.getLogger(__name__)


@dataclass
class Preset:
    id: str
    name: str
    description: str
    pdf_path: Path
    original_filename: str
    fields: List[SigningField] = field(default_factory=list)

    def pdf_available(self) -> bool:
        return self.pdf_path.is_file()


class PresetService:
    def __init__(self, manifest_path: Optional[str] = None):
        self.manifest_path = Path(manifest_path or settings.presets_manifest_path)

    def _read_manifest(self) -> List[dict]:
        if not self.manifest_path.is_file():
            logger.info(f"Preset manifest not found at {self.manifest_path}")
            return []
        try:
            raw = json.loads(self.manifest_path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Could not read preset manifest {self.manifest_path}: {e}")
            return []

        entries = raw.get("presets") if isinstance(raw, dict) else raw
        return entries if isinstance(entries, list) else []

    def _to_preset(self, entry: dict) -> Optional[Preset]:
        preset_id = str(entry.get("id") or "").strip()
        pdf_path = str(entry.get("pdf_path") or "").strip()
        if not preset_id or not pdf_path:
            logger.warning(f"Skipping preset entry without id or pdf_path: {entry!r}")
            return None

        fields: List[SigningField] = []
        raw_fields = entry.get("fields")
        if raw_fields:
            try:
                fields = parse_field_payload(raw_fields, field_name=f"presets.{preset_id}.fields")
            except ValidationError as e:
                logger.warning(f"Preset {preset_id} has invalid fields, ignoring them: {e}")
                fields = []

        resolved = Path(pdf_path)
        if not resolved.is_absolute():
            resolved = self.manifest_path.parent / resolved

        return Preset(
            id=preset_id,
            name=str(entry.get("name") or preset_id),
            description=str(entry.get("description") or ""),
            pdf_path=resolved,
            original_filename=str(entry.get("original_filename") or resolved.name),
            fields=fields,
        )

    def list_presets(self) -> List[Preset]:
        presets = []
        for entry in self._read_manifest():
            if not isinstance(entry, dict):
                continue
            preset = self._to_preset(entry)
            if preset:
                presets.append(preset)
        return presets

    def list_available(self) -> List[Preset]:
        """Presets whose PDF is present in this deployment."""
        return [p for p in self.list_presets() if p.pdf_available()]

    def get_preset(self, preset_id: str) -> Optional[Preset]:
        for preset in self.list_presets():
            if preset.id == preset_id:
                return preset
        return None

    def load_pdf(self, preset: Preset) -> bytes:
        try:
            return preset.pdf_path.read_bytes()
        except OSError as e:
            raise FileOperationError("read", str(preset.pdf_path), str(e))
