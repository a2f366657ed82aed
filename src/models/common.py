# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Shared enumerations used across request and response models."""

from enum import Enum


class ClassType(str, Enum):
    """Kind of class session."""

    THEORY = "theory"
    PRACTICE = "practice"


DAY_NAMES: dict[int, str] = {
    1: "Monday",
    2: "Tuesday",
    3: "Wednesday",
    4: "Thursday",
    5: "Friday",
    6: "Saturday",
    7: "Sunday",
}


def day_name(day_of_week: int) -> str:
    """Name of an ISO day of week (1 = Monday)."""
    return DAY_NAMES.get(day_of_week, str(day_of_week))
