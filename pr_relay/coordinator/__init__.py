"""Event reconciliation."""

from pr_relay.coordinator.claims import CreationClaims
from pr_relay.coordinator.engine import ReconciliationEngine
from pr_relay.coordinator.status import derive_status

__all__ = ["CreationClaims", "ReconciliationEngine", "derive_status"]
