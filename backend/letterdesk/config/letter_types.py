"""
Letter Type Registry

Loads the catalog of requestable letter types from YAML (letter_types.yml).
The registry is built once at startup and is read-only afterwards; services
receive it through their constructor.
"""

from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple
import logging
import re

import yaml

from letterdesk.core.config import settings

logger = logging.getLogger(__name__)

# Codes are embedded in letter numbers, so no separators allowed
LETTER_TYPE_CODE_PATTERN = re.compile(r"^[A-Z0-9]{1,20}$")


@dataclass(frozen=True)
class LetterTypeInfo:
    """Display metadata and required supplementary fields for one letter type"""
    code: str
    name: str
    description: str = ""
    required_fields: Tuple[str, ...] = field(default_factory=tuple)

    def missing_fields(self, supplementary_data: Optional[Mapping[str, Any]]) -> List[str]:
        """Required fields that are absent or empty in the supplied data"""
        data = supplementary_data or {}
        return [name for name in self.required_fields if not data.get(name)]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "name": self.name,
            "description": self.description,
            "required_fields": list(self.required_fields),
        }


class LetterTypeRegistry:
    """Read-only lookup of letter types by code"""

    def __init__(self, letter_types: List[LetterTypeInfo]):
        types: Dict[str, LetterTypeInfo] = {}
        for info in letter_types:
            if info.code in types:
                raise ValueError(f"Duplicate letter type code: {info.code}")
            types[info.code] = info
        self._types: Mapping[str, LetterTypeInfo] = MappingProxyType(types)

    def get(self, code: str) -> Optional[LetterTypeInfo]:
        return self._types.get(code)

    def is_valid(self, code: str) -> bool:
        return code in self._types

    def all(self) -> List[LetterTypeInfo]:
        return list(self._types.values())

    def codes(self) -> List[str]:
        return list(self._types.keys())

    def __contains__(self, code: object) -> bool:
        return code in self._types

    def __iter__(self) -> Iterator[LetterTypeInfo]:
        return iter(self._types.values())

    def __len__(self) -> int:
        return len(self._types)


class LetterTypeLoader:
    """Load letter type definitions from a YAML file"""

    def __init__(self, config_path: Optional[str] = None):
        """
        Initialize LetterTypeLoader

        Args:
            config_path: Path to a letter types YAML file
                (defaults to settings.LETTER_TYPES_FILE or the bundled letter_types.yml)
        """
        if config_path is None:
            self.config_path = settings.letter_types_path
        else:
            self.config_path = Path(config_path)

        if not self.config_path.exists():
            raise FileNotFoundError(f"Letter types file not found: {self.config_path}")

    def load(self) -> LetterTypeRegistry:
        """
        Parse the YAML file into a registry.

        Raises:
            ValueError: if an entry is missing its code/name or the code is malformed,
                or the file defines no letter types
        """
        with open(self.config_path, 'r', encoding='utf-8') as f:
            config = yaml.safe_load(f) or {}

        entries = config.get('letter_types', [])
        if not entries:
            raise ValueError(f"No letter types defined in {self.config_path}")
        letter_types = []

        for index, entry in enumerate(entries):
            code = str(entry.get('code', '')).strip()
            name = str(entry.get('name', '')).strip()
            if not code or not name:
                raise ValueError(f"Letter type #{index} in {self.config_path} needs both code and name")
            if not LETTER_TYPE_CODE_PATTERN.match(code):
                raise ValueError(f"Invalid letter type code '{code}' in {self.config_path}")

            letter_types.append(
                LetterTypeInfo(
                    code=code,
                    name=name,
                    description=str(entry.get('description') or ''),
                    required_fields=tuple(entry.get('required_fields') or ()),
                )
            )

        registry = LetterTypeRegistry(letter_types)
        logger.info(f"Loaded {len(registry)} letter types from {self.config_path}")
        return registry


@lru_cache(maxsize=1)
def get_letter_type_registry() -> LetterTypeRegistry:
    """Registry built from the configured YAML file (loaded once per process)"""
    return LetterTypeLoader().load()
