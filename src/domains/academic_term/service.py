# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Academic term service.

This module provides the TermService class for:
- Loading the active term (never cached, read per operation)
- Checking that an operation targets the active term
- Activating a term
"""

from __future__ import annotations

import logging

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from src.domains.results import (
    BadRequestError,
    NotFoundError,
    ServiceError,
    returns_result,
)
from src.infrastructure.database.models import Term
from src.models.term import TermResponse

logger = logging.getLogger(__name__)


class TermServiceError(ServiceError):
    """Base exception for term service errors."""

    pass


class TermNotFoundError(TermServiceError, NotFoundError):
    """Raised when a term is not found."""

    pass


class NoActiveTermError(TermServiceError, BadRequestError):
    """Raised when no term is active."""

    pass


class InactiveTermError(TermServiceError, BadRequestError):
    """Raised when an operation targets a term that is not active."""

    pass


class TermService:
    """Service for academic terms.

    Attributes:
        db: Async database session.
    """

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def load_active_term(self) -> Term | None:
        """Load the currently active term, if any."""
        result = await self.db.execute(select(Term).where(Term.is_active.is_(True)))
        return result.scalars().first()

    async def load_term(self, term_id: str) -> Term:
        """Load a term by ID.

        Raises:
            TermNotFoundError: If the term does not exist.
        """
        result = await self.db.execute(select(Term).where(Term.id == str(term_id)))
        term = result.scalar_one_or_none()
        if not term:
            raise TermNotFoundError(f"Term {term_id} not found")
        return term

    async def require_active(self, term_id: str) -> Term:
        """Ensure the given term exists and is the active term.

        Args:
            term_id: Term the caller wants to operate on.

        Returns:
            The active term.

        Raises:
            NoActiveTermError: If no term is active.
            TermNotFoundError: If the term does not exist.
            InactiveTermError: If the term is not the active one.
        """
        active = await self.load_active_term()
        if active is None:
            raise NoActiveTermError("There is no active term")
        if active.id == str(term_id):
            return active

        term = await self.load_term(term_id)
        raise InactiveTermError(
            f"Term {term.name} is not the active term ({active.name})",
            details={"term_id": term.id, "active_term_id": active.id},
        )

    @returns_result
    async def get_active_term(self) -> TermResponse:
        """Get the active term.

        Raises:
            NoActiveTermError: If no term is active.
        """
        term = await self.load_active_term()
        if term is None:
            raise NoActiveTermError("There is no active term")
        return TermResponse.model_validate(term)

    @returns_result
    async def get_term(self, term_id: str) -> TermResponse:
        """Get a term by ID.

        Raises:
            TermNotFoundError: If the term does not exist.
        """
        return TermResponse.model_validate(await self.load_term(term_id))

    @returns_result
    async def activate_term(self, term_id: str) -> TermResponse:
        """Make a term the only active term.

        Args:
            term_id: Term to activate.

        Returns:
            The activated term.

        Raises:
            TermNotFoundError: If the term does not exist.
        """
        term = await self.load_term(term_id)

        await self.db.execute(
            update(Term).where(Term.is_active.is_(True), Term.id != term.id).values(is_active=False)
        )
        term.is_active = True

        await self.db.commit()
        await self.db.refresh(term)

        logger.info("Activated term %s (%s)", term.name, term.id)

        return TermResponse.model_validate(term)
