"""Shared state handed to every importer."""

import logging
from dataclasses import dataclass, field
from typing import Any

from gsdta.config import ImportConfig
from gsdta.database.repository import Repository
from gsdta.database.store import IdentityProvider

from .report import ImportReport

DRY_RUN_PREFIX = "[DRY-RUN]"


@dataclass
class ImportSession:
    """One import run's collaborators.

    Attributes:
        config: Run configuration, built once at startup.
        repo: Document repository for the target backend.
        identity: Account provider for the target backend.
        report: Problems collected across all importers.
    """

    config: ImportConfig
    repo: Repository
    identity: IdentityProvider
    report: ImportReport = field(default_factory=ImportReport)

    @property
    def dry_run(self) -> bool:
        return self.config.dry_run

    @property
    def academic_year(self) -> str:
        return self.config.academic_year


def log_dry_run(logger: logging.Logger, message: str, *args: Any) -> None:
    """Log the write a dry run skipped."""
    logger.info(f"{DRY_RUN_PREFIX} Would {message}", *args)
