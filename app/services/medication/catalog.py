"""Medication catalog backed by a YAML file."""
import logging
import re
from pathlib import Path
from typing import List, Optional

import yaml
from pydantic import BaseModel

logger = logging.getLogger(__name__)


class Medication(BaseModel):
    """Catalog entry."""

    name: str
    type: str
    aliases: List[str] = []


class MedicationCatalog:
    """Looks up medication types and finds known medication names in free text."""

    def __init__(self, catalog_file: Optional[str] = None):
        """Initialize with optional catalog file path."""
        if catalog_file is None:
            catalog_file = Path(__file__).parent / "data" / "medications.yaml"
        self.catalog_file = Path(catalog_file)
        self._medications: Optional[List[Medication]] = None

    def _load(self) -> List[Medication]:
        """Load the catalog from YAML."""
        if self._medications is None:
            if not self.catalog_file.exists():
                logger.warning(f"[CATALOG] Catalog file not found: {self.catalog_file}")
                self._medications = []
            else:
                with open(self.catalog_file, "r") as f:
                    data = yaml.safe_load(f) or {}
                self._medications = [
                    Medication(**item) for item in data.get("medications", [])
                ]
                logger.info(f"[CATALOG] Loaded {len(self._medications)} medications")
        return self._medications

    def medications(self) -> List[Medication]:
        return list(self._load())

    def lookup(self, name: Optional[str]) -> Optional[Medication]:
        """Get a catalog entry by name or alias."""
        if not name:
            return None
        name_lower = name.lower().strip()
        for medication in self._load():
            if medication.name.lower() == name_lower:
                return medication
            if any(alias.lower() == name_lower for alias in medication.aliases):
                return medication
        return None

    def medication_type(self, name: Optional[str]) -> Optional[str]:
        """Get the type of a medication, or None when it is not in the catalog."""
        medication = self.lookup(name)
        return medication.type if medication else None

    def find_in_text(self, text: str) -> Optional[Medication]:
        """Find the first catalog medication mentioned in text."""
        best = None
        best_position = None
        for medication in self._load():
            for term in [medication.name, *medication.aliases]:
                match = re.search(rf"(?<!\w){re.escape(term)}(?!\w)", text, re.IGNORECASE)
                if match and (best_position is None or match.start() < best_position):
                    best, best_position = medication, match.start()
        return best

    def types(self) -> List[str]:
        """All medication types, sorted."""
        return sorted({medication.type for medication in self._load()})
