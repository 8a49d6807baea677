"""Apollo integration - prospect discovery."""

from lib.apollo.client import ApolloClient, DEFAULT_CRITERIA
from lib.apollo.models import Candidate, normalize_domain, parse_search_response

__all__ = ["ApolloClient", "Candidate", "DEFAULT_CRITERIA", "normalize_domain", "parse_search_response"]
