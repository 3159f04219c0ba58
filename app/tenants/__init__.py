"""
Tenants app: gardens, their card holders and the distributors that share revenue.

These records are maintained by the back office; the payments app reads them
through tenants.services.TenantDirectory and never edits them directly, apart
from renewing a card's license after a settled payment.
"""
