"""External collaborators: payment gate, source-control sync, and bundling."""

from .errors import IntegrationError, PaymentVerificationError, SyncError
from .payments import PaymentGate, StripePaymentGate, StaticPaymentGate
from .github_sync import SourceControl, GitHubSync
from .bundler import bundle, write_bundle

__all__ = [
    "IntegrationError",
    "PaymentVerificationError",
    "SyncError",
    "PaymentGate",
    "StripePaymentGate",
    "StaticPaymentGate",
    "SourceControl",
    "GitHubSync",
    "bundle",
    "write_bundle",
]
