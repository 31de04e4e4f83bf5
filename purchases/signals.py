from django.dispatch import Signal

# Sent when a purchase grants (or re-grants) access to a version.
# Arguments: access (UserVersionAccess), created (bool).
access_granted = Signal()

# Sent after a purchase was refunded and its access grants revoked.
# Arguments: purchase (Purchase), revoked (int).
purchase_refunded = Signal()
