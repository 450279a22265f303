import uuid
from decimal import Decimal

from sqlalchemy import Enum, Numeric


def new_id() -> str:
    return uuid.uuid4().hex


def enum_column(enum_cls):
    """Store the enum *value* ("pending_hr") rather than the member name."""
    return Enum(
        enum_cls,
        values_callable=lambda members: [m.value for m in members],
        native_enum=False,
        validate_strings=True,
        length=32,
    )


# Day counts and balances: half days must stay exact
Days = Numeric(8, 2, asdecimal=True)
ZERO = Decimal("0")
