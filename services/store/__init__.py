"""Contact / Enrichment / Setting store."""

from services.store.repo import IRepo, Repo
from services.store.mock_repo import MockRepo

__all__ = ["IRepo", "Repo", "MockRepo"]
