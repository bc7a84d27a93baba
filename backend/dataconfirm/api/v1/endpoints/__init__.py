# API endpoints
from . import auth, catalog, confirmations, submissions, files, health

__all__ = ["auth", "catalog", "confirmations", "submissions", "files", "health"]
