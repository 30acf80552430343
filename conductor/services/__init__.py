"""Services for the trip conductor."""
from .llm_client import LLMClient
from .generator import PlanGenerator
from .edit_proposer import EditProposer
from .entitlements import EntitlementGate, compute_entitlements
from .wizard import WizardController
from .editor import EditProposalEngine
from .mutation import MutationApplier

__all__ = [
    "LLMClient",
    "PlanGenerator",
    "EditProposer",
    "EntitlementGate",
    "compute_entitlements",
    "WizardController",
    "EditProposalEngine",
    "MutationApplier",
]
