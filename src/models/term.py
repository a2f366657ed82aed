# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Academic term models."""

from datetime import date

from pydantic import BaseModel, ConfigDict, Field


class TermResponse(BaseModel):
    """Academic term."""

    model_config = ConfigDict(from_attributes=True)

    id: str = Field(description="Term ID")
    name: str = Field(description="Display name, e.g. 2025-I")
    year: int = Field(description="Calendar year")
    half: str = Field(description="Half-year label")
    start_date: date = Field(description="First day of classes")
    end_date: date = Field(description="Last day of classes")
    is_active: bool = Field(description="Whether this is the active term")
