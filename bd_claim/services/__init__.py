"""Claim use case and its request/result schemas."""

from bd_claim.services.claim import ClaimIssueUseCase
from bd_claim.services.schemas import (
    STATUS_ERROR,
    STATUS_OK,
    ClaimErrorDTO,
    ClaimIssueRequest,
    ClaimIssueResult,
    FiltersDTO,
    IssueDTO,
)

__all__ = [
    "STATUS_ERROR",
    "STATUS_OK",
    "ClaimErrorDTO",
    "ClaimIssueRequest",
    "ClaimIssueResult",
    "ClaimIssueUseCase",
    "FiltersDTO",
    "IssueDTO",
]
