from pydantic import BaseModel, Field
from typing import Dict, List


class WeekOption(BaseModel):
    """
    One published timetable week, as offered to clients.
    """
    value: str = Field(..., description="ISO week number used in upstream URLs (e.g., '41').")
    label: str = Field(..., description="Monday of the week as D.M.YYYY (e.g., '6.10.2025').")
    display: str = Field(..., description="Monday-Friday range (e.g., '6.10. - 10.10.').")
    is_current: bool = Field(False, alias="isCurrent", description="True when today falls inside the week.")

    class Config:
        populate_by_name = True


class ClassOption(BaseModel):
    """
    One class (study group) that publishes a timetable.
    """
    value: str = Field(..., description="Unpadded class number (e.g., '2').")
    label: str = Field(..., description="Class name from the page banner (e.g., 'RAI 2.l').")


class OptionsResponse(BaseModel):
    """
    Response body for the options endpoint.
    """
    weeks: List[WeekOption] = Field(default_factory=list)
    classes: List[ClassOption] = Field(default_factory=list)


class SchedulePreferences(BaseModel):
    """
    Per-user display preferences applied to a parsed schedule.
    """
    selected_sub_groups: Dict[str, int] = Field(
        default_factory=dict,
        alias="selectedSubGroups",
        description="Mapping of subject to the sub-group (skupina) number the user attends.",
    )
    hidden_subjects: List[str] = Field(
        default_factory=list,
        alias="hiddenSubjects",
        description="Subjects that should not be shown or exported.",
    )

    class Config:
        populate_by_name = True
