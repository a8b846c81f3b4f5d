"""Errors raised at the external collaborator boundary."""


class IntegrationError(Exception):
    """Base error for failures of an external collaborator."""


class PaymentVerificationError(IntegrationError):
    """Payment could not be verified. Always fatal for a build."""


class SyncError(IntegrationError):
    """Pushing files to source control failed. Never fatal for a build."""
