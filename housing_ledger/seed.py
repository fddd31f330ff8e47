"""Default reference data and the ``housing-seed`` console entrypoint."""

from __future__ import annotations

import argparse
import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from housing_ledger.core.auth import ensure_user_principal
from housing_ledger.core.config import get_settings
from housing_ledger.core.logging import configure_logging
from housing_ledger.models.entities import (
    County,
    ExpenseCategory,
    PaymentMethod,
    ServiceStatus,
    ServiceType,
    UserRole,
)

logger = logging.getLogger(__name__)

DEFAULT_REFERENCE_DATA: dict[type, tuple[str, ...]] = {
    ServiceStatus: ("Active", "Inactive", "Pending"),
    ServiceType: ("GRH", "Housing Stabilization", "LTH"),
    County: ("Hennepin", "Ramsey", "Dakota", "Anoka"),
    PaymentMethod: ("Check", "ACH", "Wire Transfer"),
    ExpenseCategory: ("Security Deposit", "Moving Expenses", "Utilities", "Other"),
}


def seed_reference_data(db: Session) -> dict[str, int]:
    """Insert default rows into empty reference tables.

    Tables that already hold any row are left alone. Returns the number of
    rows created per table.
    """

    created: dict[str, int] = {}
    for model, names in DEFAULT_REFERENCE_DATA.items():
        if db.scalar(select(model.id).limit(1)) is not None:
            created[model.__tablename__] = 0
            continue
        for name in names:
            db.add(model(name=name))
        created[model.__tablename__] = len(names)
        logger.info("seeded %s default %s", len(names), model.__tablename__)
    db.commit()
    return created


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Seed default reference data.")
    parser.add_argument("--super-admin-email", help="Create or promote this user to super admin.")
    parser.add_argument("--super-admin-name", default="Super Admin")
    args = parser.parse_args(argv)

    configure_logging(get_settings().log_level)

    from housing_ledger.db.session import SessionLocal

    with SessionLocal() as db:
        seed_reference_data(db)
        if args.super_admin_email:
            user = ensure_user_principal(
                db,
                email=args.super_admin_email,
                display_name=args.super_admin_name,
                role=UserRole.SUPER_ADMIN,
            )
            logger.info("super admin ready: %s", user.email)


if __name__ == "__main__":
    main()
