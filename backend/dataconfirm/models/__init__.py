# Re-export all models for convenient imports
from dataconfirm.models.user import User, UserRole
from dataconfirm.models.confirmation import Confirmation
from dataconfirm.models.submission import Submission, RequirementAnswer, GridRow

__all__ = [
    # User
    "User",
    "UserRole",
    # First screen
    "Confirmation",
    # Submission record sets
    "Submission",
    "RequirementAnswer",
    "GridRow",
]
