"""Account provisioning: parents, staff and the super admin."""

from typing import Dict, NamedTuple, Optional

from gsdta.database.models import UserProfile
from gsdta.logutils import get_logger, with_context

from .base import ImportSession, log_dry_run
from .report import ImportResult

logger = get_logger(__name__)


class Account(NamedTuple):
    """Result of an ensure-account call.

    ``uid`` is None only in a dry run when the account does not exist yet.
    """

    uid: Optional[str]
    created: bool


def ensure_account(
    session: ImportSession,
    email: str,
    display_name: str,
    email_verified: bool = False,
) -> Account:
    """Look up an account by email and create it with the default password if absent."""
    existing = session.identity.get_user_by_email(email)
    if existing is not None:
        logger.debug("Account exists: %s", email)
        return Account(existing.uid, False)

    if session.dry_run:
        log_dry_run(logger, "create account: %s", email)
        return Account(None, False)

    record = session.identity.create_user(
        email=email,
        password=session.config.default_password,
        display_name=display_name,
        email_verified=email_verified,
    )
    logger.info("Created account: %s", email)
    return Account(record.uid, True)


def create_parent_accounts(session: ImportSession, parents: Dict[str, str]) -> int:
    """Create one parent account per email and link that parent's students.

    Args:
        session: Current import session.
        parents: Normalized parent email -> display name.

    Returns:
        Number of accounts created (or that would be created in a dry run).
    """
    logger.info("Creating %d parent accounts...", len(parents))
    created = 0

    for email, display_name in parents.items():
        try:
            existing = session.identity.get_user_by_email(email)
            if existing is not None:
                logger.info("Parent account exists: %s", email)
                continue

            if session.dry_run:
                log_dry_run(logger, "create parent account: %s", email)
                created += 1
                continue

            record = session.identity.create_user(
                email=email,
                password=session.config.default_password,
                display_name=display_name,
                email_verified=False,
            )
            session.repo.create_user_profile(
                record.uid,
                UserProfile(email=email, display_name=display_name, roles=["parent"]),
            )
            linked = session.repo.link_students_to_parent(email, record.uid)
            logger.info("Created parent account: %s (%d students linked)", email, linked)
            created += 1
        except Exception as e:
            session.report.record_row_error("parent account", None, e)

    return created


def ensure_super_admin(session: ImportSession) -> ImportResult:
    """Make sure the configured super admin has an account with the ``admin`` role.

    The account is created with a verified email. Existing roles on the
    profile are kept. Without ``SUPER_ADMIN_EMAIL`` the step is skipped.
    """
    result = ImportResult()
    email = session.config.super_admin_email
    if not email:
        logger.info("No super admin configured (SUPER_ADMIN_EMAIL unset), skipping")
        result.skipped += 1
        return result

    email = email.strip().lower()
    display_name = session.config.super_admin_name or "Super Admin"

    with with_context(operation="ensure_super_admin"):
        try:
            account = ensure_account(session, email, display_name, email_verified=True)
            if account.uid is None:
                result.imported += 1
                return result

            if session.dry_run:
                log_dry_run(logger, "ensure admin role for: %s", email)
                result.skipped += 1
                return result

            if session.repo.add_user_role(account.uid, email, display_name, "admin"):
                logger.info("Granted admin role to %s", email)
                result.imported += 1
            else:
                logger.info("User already has admin role: %s", email)
                result.skipped += 1
        except Exception as e:
            session.report.record_row_error("super admin", None, e)
            result.errors += 1

    return result
