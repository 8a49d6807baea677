"""HubSpot integration - CRM dedupe lookups and contact sync."""

from lib.hubspot.client import HubSpotClient
from lib.hubspot.models import CrmContact, CLOSED_LIFECYCLE_STAGES

__all__ = ["HubSpotClient", "CrmContact", "CLOSED_LIFECYCLE_STAGES"]
