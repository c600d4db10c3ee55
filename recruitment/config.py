from __future__ import annotations
from datetime import tzinfo as tzinfo_t
from pathlib import Path
from typing import List
from dateutil import tz as dtz
from pydantic import BaseModel, Field, field_validator

class Settings(BaseModel):
    # Registration
    invitation_code: str = Field("welcome2024", min_length=1)
    participating_departments: List[str] = Field(default_factory=list)   # empty = any department

    # Which interview rounds the reconciler runs
    stages: List[int] = Field(default_factory=lambda: [1, 2])

    # Slot generator defaults
    slot_minutes: int = Field(20, ge=1)
    day_start: str = Field("18:00", pattern=r"^\d{2}:\d{2}$")
    day_end: str = Field("20:00", pattern=r"^\d{2}:\d{2}$")
    timezone: str = "UTC"

    # Storage / runtime
    state_path: str = "recruitment_state.json"
    log_level: str = Field("INFO", pattern="^(DEBUG|INFO|WARNING|ERROR)$")

    @field_validator("stages")
    @classmethod
    def _known_stages(cls, v: List[int]) -> List[int]:
        bad = [s for s in v if s not in (1, 2)]
        if bad:
            raise ValueError(f"Unknown interview stages: {bad}")
        return v

    @field_validator("timezone")
    @classmethod
    def _known_timezone(cls, v: str) -> str:
        if dtz.gettz(v) is None:
            raise ValueError(f"Unknown timezone: {v}")
        return v

    @classmethod
    def from_file(cls, path: str | Path) -> "Settings":
        return cls.model_validate_json(Path(path).read_text(encoding="utf-8"))

    def tzinfo(self) -> tzinfo_t:
        return dtz.gettz(self.timezone)

    def accepts_department(self, department: str) -> bool:
        return not self.participating_departments or department in self.participating_departments
