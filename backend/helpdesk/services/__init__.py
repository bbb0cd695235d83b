"""
Business logic services package.

WHY: Ticket, comment and attachment rules live in services, separated
from API routes and data access (API -> Service -> DAO). Notification,
storage and audit services are the collaborators they share.
"""
