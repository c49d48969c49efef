# Overview: Closed value sets shared by models, services, and routes.

from __future__ import annotations

from enum import Enum


class OfferStatus(str, Enum):
    DRAFT = "Draft"
    IN_REVIEW = "In Review"
    APPROVED = "Approved"
    SENT = "Sent"
    WON = "Won"
    LOST = "Lost"
    HOLD = "Hold"


class ReviewType(str, Enum):
    TECHNICAL = "technical"
    COMMERCIAL = "commercial"


class ReviewStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    NEEDS_IMPROVEMENT = "needs_improvement"


class ContractStatus(str, Enum):
    DRAFT = "Draft"
    ACTIVE = "Active"
    EXPIRED = "Expired"
    TERMINATED = "Terminated"


OFFER_STATUSES = tuple(s.value for s in OfferStatus)
REVIEW_TYPES = tuple(t.value for t in ReviewType)
REVIEW_STATUSES = tuple(s.value for s in ReviewStatus)
REVIEW_DECISIONS = (ReviewStatus.APPROVED.value, ReviewStatus.NEEDS_IMPROVEMENT.value)
CONTRACT_STATUSES = tuple(s.value for s in ContractStatus)

PROJECT_STATUSES = ("Planned", "In Progress", "On Hold", "Completed", "Cancelled")
MILESTONE_STATUSES = ("Pending", "Invoiced", "Paid")
OPPORTUNITY_STAGES = ("Lead", "Qualified", "Proposal", "Negotiation", "Closed Won", "Closed Lost")
PARTNER_TYPES = ("Reseller", "Technology", "Consulting", "Subcontractor")
SERVICE_CATEGORIES = ("Core Services", "Supporting Services", "Ancillary Services", "Additional Costs")
DEFAULT_MANDAY_RATE = 300.0
TASK_STATUSES = ("Not Started", "In Progress", "Completed")
TASK_PRIORITIES = ("Low", "Medium", "High")

ADMIN_ROLE = "admin"

# Job-title roles accepted for regular users (and by the user spreadsheet import)
USER_ROLES = (
    "CTO",
    "CGO",
    "CFO",
    "CEO",
    "Sales Rep",
    "Sales Manager",
    "Presales Engineer",
    "Project Manager",
    "Customer Success",
    "Blockchain Developer",
    "Front End Developer",
    "Back End Developer",
    "Ui-Ux Developer",
    "Quality Assurance Engineer",
    "Solution Architect",
    "Project Director",
    "Customer",
    "Subcontractor",
)

ASSIGNABLE_ROLES = (ADMIN_ROLE,) + USER_ROLES

# Object storage buckets, one per attachment owner type
BUCKET_CONTRACT_DOCUMENTS = "contract-documents"
BUCKET_DRP_DOCUMENTS = "drp-documents"
BUCKET_PARTNER_DOCUMENTS = "partner-documents"
BUCKETS = (BUCKET_CONTRACT_DOCUMENTS, BUCKET_DRP_DOCUMENTS, BUCKET_PARTNER_DOCUMENTS)

# Accepted attachment extensions per owner type
REVIEW_DOCUMENT_EXTENSIONS = (".pdf", ".doc", ".docx")
CONTRACT_DOCUMENT_EXTENSIONS = (".pdf", ".doc", ".docx")
GENERAL_DOCUMENT_EXTENSIONS = (".pdf", ".doc", ".docx", ".xls", ".xlsx", ".txt")

# Human-readable code prefixes
CODE_PREFIX_USER = "USR"
CODE_PREFIX_CONTRACT = "CNT"
CODE_PREFIX_OFFER = "OFR"
CODE_PREFIX_OPPORTUNITY = "OPP"
CODE_PREFIX_PROJECT = "PRJ"
CODE_PREFIX_PARTNER = "PTR"
CODE_PREFIX_CUSTOMER = "CUS"
