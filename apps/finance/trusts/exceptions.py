from decimal import Decimal

from django.core.exceptions import ObjectDoesNotExist, ValidationError


class LedgerValidationError(ValidationError):
    """Bad or missing input; the user can correct it and resubmit."""


class InvalidAmount(LedgerValidationError):
    def __init__(self, amount):
        self.amount = amount
        super().__init__(f"Amount must be a positive number (got {amount!r}).", code='invalid_amount')


class MissingRequiredField(LedgerValidationError):
    def __init__(self, field_name):
        self.field_name = field_name
        label = field_name.replace('_', ' ')
        super().__init__(f"{label.capitalize()} is required.", code='missing_field')


class InsufficientBalance(LedgerValidationError):
    def __init__(self, *, available, requested):
        self.available = Decimal(available)
        self.requested = Decimal(requested)
        self.shortfall = self.requested - self.available
        super().__init__(
            f"Amount exceeds trust's available balance of {self.available} "
            f"(short by {self.shortfall}).",
            code='insufficient_balance',
        )


class ReferenceNotFound(ObjectDoesNotExist):
    """A referenced row no longer exists; callers should re-fetch."""

    label = 'Record'

    def __init__(self, pk):
        self.pk = pk
        super().__init__(f"{self.label} {pk} does not exist.")


class TrustNotFound(ReferenceNotFound):
    label = 'Trust'


class StudentNotFound(ReferenceNotFound):
    label = 'Student'


class AcademicYearNotFound(ReferenceNotFound):
    label = 'Academic year'


class StorageFailure(Exception):
    """The database rejected or lost the write; nothing was committed."""


class BalanceLimitExceeded(LedgerValidationError):
    def __init__(self, *, balance, amount, limit):
        self.balance = Decimal(balance)
        self.amount = Decimal(amount)
        self.limit = Decimal(limit)
        super().__init__(
            f"Adding {self.amount} would exceed the maximum trust balance of {self.limit} "
            f"(current balance {self.balance}).",
            code='balance_limit',
        )
