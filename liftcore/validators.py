"""Pydantic validation models for data handed to the training core."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from liftcore.models import (
    WEEK_LENGTH,
    ProgressionRule,
    SetSchemeType,
    SetStatus,
    Split,
    SplitType,
)


class SetResultInput(BaseModel):
    actual_reps: int = Field(ge=0, le=200)
    actual_load: float = Field(ge=0.0)
    rpe: Optional[float] = Field(default=None, ge=1, le=10)
    time_seconds: Optional[int] = Field(default=None, ge=0)
    status: SetStatus = SetStatus.COMPLETED

    @field_validator("status")
    @classmethod
    def finished_status(cls, v):
        if v == SetStatus.PENDING:
            raise ValueError("a logged set must be completed or failed")
        return v


class SetCorrectionInput(BaseModel):
    actual_reps: Optional[int] = Field(default=None, ge=0, le=200)
    actual_load: Optional[float] = Field(default=None, ge=0.0)
    rpe: Optional[float] = Field(default=None, ge=1, le=10)
    time_seconds: Optional[int] = Field(default=None, ge=0)
    status: Optional[SetStatus] = None

    @field_validator("status")
    @classmethod
    def finished_status(cls, v):
        if v == SetStatus.PENDING:
            raise ValueError("a corrected set cannot go back to pending")
        return v


class SplitInput(BaseModel):
    id: str = Field(min_length=1)
    name: str = Field(min_length=1, max_length=120)
    type: SplitType
    days_per_week: int = Field(ge=1, le=7)
    rotation_pattern: list[str]
    workout_template_ids: list[str] = Field(default_factory=list)

    @field_validator("rotation_pattern")
    @classmethod
    def one_full_week(cls, v):
        if len(v) != WEEK_LENGTH:
            raise ValueError(f"rotation_pattern must have exactly {WEEK_LENGTH} entries")
        if any(not str(label).strip() for label in v):
            raise ValueError("rotation_pattern labels must not be blank")
        return [str(label).strip() for label in v]

    def to_split(self) -> Split:
        return Split(
            id=self.id,
            name=self.name,
            type=self.type,
            days_per_week=self.days_per_week,
            rotation_pattern=list(self.rotation_pattern),
            workout_template_ids=list(self.workout_template_ids),
        )


class ProgressionRuleInput(BaseModel):
    id: str = Field(min_length=1)
    name: str = Field(min_length=1)
    type: SetSchemeType
    description: str = ""
    increment: Optional[float] = Field(default=None, gt=0)
    decrease_on_miss: float = Field(default=5.0, ge=0)
    max_weekly_increase: float = Field(default=0.10, gt=0, le=0.5)
    max_absolute_increase: Optional[float] = Field(default=None, gt=0)
    duration_increment_seconds: int = Field(default=5, ge=1, le=120)
    advisory_assisted: bool = False

    @model_validator(mode="after")
    def absolute_cap_covers_increment(self):
        if (
            self.increment is not None
            and self.max_absolute_increase is not None
            and self.max_absolute_increase < self.increment
        ):
            raise ValueError("max_absolute_increase must be >= increment")
        return self

    def to_rule(self) -> ProgressionRule:
        return ProgressionRule(**self.model_dump())
