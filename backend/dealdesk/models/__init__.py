from .auth import User, SessionToken
from .masterdata import Partner, PartnerDocument, Customer, LicensePricing, CatalogService
from .opportunities import Opportunity, OpportunityDocument
from .offers import Offer, OfferEnvironment, OfferEnvironmentComponent, OfferServiceSet, OfferServiceComponent
from .reviews import ReviewRequest, Review, ReviewHistoryEntry, ReviewDocument
from .contracts import Contract, ContractDocument
from .projects import Project, PaymentMilestone, ProjectTeamMember, ProjectTask

__all__ = [
    'User', 'SessionToken',
    'Partner', 'PartnerDocument', 'Customer', 'LicensePricing', 'CatalogService',
    'Opportunity', 'OpportunityDocument',
    'Offer', 'OfferEnvironment', 'OfferEnvironmentComponent', 'OfferServiceSet', 'OfferServiceComponent',
    'ReviewRequest', 'Review', 'ReviewHistoryEntry', 'ReviewDocument',
    'Contract', 'ContractDocument',
    'Project', 'PaymentMilestone', 'ProjectTeamMember', 'ProjectTask',
]
