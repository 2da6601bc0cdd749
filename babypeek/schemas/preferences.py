from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

PreferenceReason = Literal[
    "more_realistic",
    "better_lighting",
    "cuter_expression",
    "clearer_details",
    "better_colors",
    "more_natural",
    "other",
]


class PreferenceIn(BaseModel):
    job_id: str
    selected_result_id: str
    reason: PreferenceReason | None = None
    shown_variants: list[str] = Field(default_factory=list)


class PreferenceOut(BaseModel):
    preference_id: str
    job_id: str
    selected_result_id: str
    selected_variant_descriptor: str
    reason: str | None
    created_at: datetime | None = None
