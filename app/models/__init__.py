# Models package — import all models here so Alembic can discover them.

from app.models.account import Account  # noqa: F401
from app.models.credit_transaction import CreditTransaction  # noqa: F401
from app.models.credit_package import CreditPackage  # noqa: F401
from app.models.audit import AuditEvent  # noqa: F401
