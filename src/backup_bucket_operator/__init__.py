"""Backup bucket operator: KMS key, S3 bucket and SSM parameter for device backups."""

__version__ = "0.1.0"
