"""Custom exceptions for the requisition lifecycle notification system."""


class RequisitionWorkflowException(Exception):
    """Base exception for all requisition workflow errors."""
    pass


class RequisitionNotFoundException(RequisitionWorkflowException):
    """Raised when a requisition cannot be found in storage."""
    pass


class InvalidRequisitionEventException(RequisitionWorkflowException):
    """Raised when a requisition write event payload cannot be interpreted."""
    pass


class MessagingException(Exception):
    """Base exception for messaging operations."""
    pass


class MessagePublishException(MessagingException):
    """Exception raised when message publishing fails."""
    pass


class TableStorageException(Exception):
    """Base exception for table storage operations."""
    pass


class EntityUpsertException(TableStorageException):
    """Exception raised when entity upsert or merge operation fails."""
    pass


class EntityQueryException(TableStorageException):
    """Exception raised when entity query operation fails."""
    pass


class EntityDeleteException(TableStorageException):
    """Exception raised when entity delete operation fails."""
    pass

class EntityNotFoundException(TableStorageException):
    """Exception raised when an entity is not found in table storage."""
    pass
