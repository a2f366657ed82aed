# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Academic term domain package.

This package provides the active-term lookup shared by enrollment,
scheduling and attendance, plus term activation.
"""

from src.domains.academic_term.service import (
    InactiveTermError,
    NoActiveTermError,
    TermNotFoundError,
    TermService,
    TermServiceError,
)

__all__ = [
    "TermService",
    "TermServiceError",
    "TermNotFoundError",
    "NoActiveTermError",
    "InactiveTermError",
]
