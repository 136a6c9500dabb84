"""Constants for the Backup Bucket Operator."""

# API Group
API_GROUP = "backup.cloud37.dev"
API_GROUP_VERSION = f"{API_GROUP}/v1alpha1"

# Resource Kinds
KIND_BACKUP_BUCKET = "BackupBucket"

# Finalizers
FINALIZER = f"{API_GROUP}/finalizer"

# Controller name used in structured logs and tags
CONTROLLER_NAME = "backup-bucket-operator"

# Key management
KEY_ALIAS_TEMPLATE = "alias/{project}-backup-key"
KEY_PENDING_WINDOW_DAYS_DEFAULT = 7
KEY_PENDING_WINDOW_DAYS_MIN = 7
KEY_PENDING_WINDOW_DAYS_MAX = 30

# Bucket naming
BUCKET_NAME_TEMPLATE = "{project}-backup-bucket-{suffix}"
BUCKET_NAME_MAX_LENGTH = 63
BUCKET_NAME_SUFFIX_LENGTH = 12

# Registry
PARAMETER_NAME_TEMPLATE = "/{project}/backupBucketName"
PARAMETER_TYPE = "String"

# Bucket policy
TLS_STATEMENT_SID = "DenyInsecureTransport"
POLICY_VERSION = "2012-10-17"

# Default lifecycle rule set
LIFECYCLE_RULE_ID = "backup-tiering"
MULTIPART_ABORT_DAYS_DEFAULT = 10

# Tags
TAG_PROJECT = "Project"
TAG_MANAGED_BY = "ManagedBy"

# Condition Types
COND_READY = "Ready"
COND_CONFIGURATION_INVALID = "ConfigurationInvalid"
COND_PROVISIONING_FAILED = "ProvisioningFailed"
COND_POLICY_CONFLICT = "PolicyConflict"

# Event Reasons
EVENT_REASON_RECONCILE_STARTED = "ReconcileStarted"
EVENT_REASON_RECONCILE_FAILED = "ReconcileFailed"
EVENT_REASON_VALIDATE_SUCCEEDED = "ValidateSucceeded"
EVENT_REASON_VALIDATE_FAILED = "ValidateFailed"
EVENT_REASON_CONVERGED = "Converged"
EVENT_REASON_POLICY_CONFLICT = "PolicyConflict"
EVENT_REASON_KEY_DELETION_SCHEDULED = "KeyDeletionScheduled"
EVENT_REASON_BUCKET_RETAINED = "BucketRetained"
