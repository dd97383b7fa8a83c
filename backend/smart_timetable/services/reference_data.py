from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Protocol

from pydantic import ValidationError

from smart_timetable.core.exceptions import ConfigurationError
from smart_timetable.schemas.reference import ReferenceData

logger = logging.getLogger(__name__)


class ReferenceDataProvider(Protocol):
    def get_reference_data(self) -> ReferenceData: ...


class StaticReferenceDataProvider:
    """Serves a fixed, in-memory reference data set."""

    def __init__(self, data: ReferenceData | None = None) -> None:
        self.data = data or ReferenceData()

    def get_reference_data(self) -> ReferenceData:
        return self.data


class JsonFileReferenceDataProvider:
    """Loads reference data from a camelCase JSON document, once."""

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)
        self._cached: ReferenceData | None = None

    def get_reference_data(self) -> ReferenceData:
        if self._cached is None:
            self._cached = self._load()
        return self._cached

    def _load(self) -> ReferenceData:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except OSError as exc:
            raise ConfigurationError(f"Reference data file {self.path} could not be read: {exc}") from exc
        try:
            data = ReferenceData.model_validate(json.loads(raw))
        except (json.JSONDecodeError, ValidationError) as exc:
            raise ConfigurationError(f"Reference data file {self.path} is invalid: {exc}") from exc
        logger.info(
            "Loaded reference data from %s | courses=%s faculty=%s rooms=%s time_slots=%s students=%s",
            self.path,
            len(data.courses),
            len(data.faculty),
            len(data.rooms),
            len(data.time_slots),
            len(data.students),
        )
        return data
