# urnik_api/models/models.py
from typing import List, Optional
from pydantic import BaseModel, Field, field_validator


class ClassEntry(BaseModel):
    time_slot: int = Field(..., alias="timeSlot")
    duration_slots: float = Field(..., alias="durationSlots")
    subject: str
    teacher: str = ""
    room: str = ""
    sub_group_label: str = Field("", alias="subGroupLabel")
    sub_group_number: Optional[int] = Field(None, alias="subGroupNumber")
    background_color: Optional[str] = Field(None, alias="backgroundColor")
    special_note: str = Field("", alias="specialNote")
    day_label: str = Field(..., alias="dayLabel")

    @field_validator("subject")
    @classmethod
    def validate_subject(cls, v):
        if not v or not v.strip():
            raise ValueError("Subject must not be empty")
        return v

    @field_validator("time_slot")
    @classmethod
    def validate_time_slot(cls, v):
        if v < 1:
            raise ValueError("Time slot must be 1 or greater")
        return v

    @field_validator("duration_slots")
    @classmethod
    def validate_duration(cls, v):
        if v <= 0:
            raise ValueError("Duration must be positive")
        return v

    class Config:
        populate_by_name = True
        frozen = True
        json_schema_extra = {
            "example": {
                "timeSlot": 2,
                "durationSlots": 1,
                "subject": "RSR lv",
                "teacher": "Uhan",
                "room": "253",
                "subGroupLabel": "Skupina 2",
                "subGroupNumber": 2,
                "backgroundColor": "#FFFF80",
                "specialNote": "",
                "dayLabel": "Torek 7.10.",
            }
        }


class DayBlock(BaseModel):
    day_label: str = Field(..., alias="dayLabel")
    classes: List[ClassEntry] = Field(default_factory=list)
    note: Optional[str] = None

    class Config:
        populate_by_name = True
        frozen = True
        json_schema_extra = {
            "example": {
                "dayLabel": "Ponedeljek 1.9.",
                "classes": [],
                "note": "Pred začetkom šol.leta",
            }
        }


class WeeklySchedule(BaseModel):
    class_name: str = Field("", alias="className")
    week_label: str = Field("", alias="weekLabel")
    days: List[DayBlock] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list) # Data-quality diagnostics from extraction

    def entries(self) -> List[ClassEntry]:
        """All class entries, flattened in day order."""
        return [entry for day in self.days for entry in day.classes]

    class Config:
        populate_by_name = True
        frozen = True
        json_schema_extra = {
            "example": {
                "className": "RAI 2.l",
                "weekLabel": "6.10. - 10.10.",
                "days": [],
                "warnings": [],
            }
        }
