"""Academic Rules Engine.

Course catalogs, term-scoped enrollment, weighted grading, attendance
bookkeeping and schedule conflict detection for academic records.

Copyright (C) 2025 Global Digital Labs (gdlabs.io)
SPDX-License-Identifier: LGPL-3.0-or-later
"""

__version__ = "0.1.0"
