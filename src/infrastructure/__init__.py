# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Infrastructure layer for the academic rules engine.

This package contains:
- Database connections and models (PostgreSQL via SQLAlchemy async)
- In-memory event bus
- Enrollment notifications
"""
