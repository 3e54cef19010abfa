"""Backup export / import package."""

from budgt.backup.bulk_transfer import (
    BACKUP_FILENAME_PREFIX,
    BackupDocument,
    BackupFormatError,
    BulkTransferService,
    ImportSummary,
    backup_filename,
)

__all__ = [
    "BACKUP_FILENAME_PREFIX",
    "BackupDocument",
    "BackupFormatError",
    "BulkTransferService",
    "ImportSummary",
    "backup_filename",
]
