"""Core exception hierarchy for pipectl.

All pipectl exceptions inherit from :class:`PipectlError`. Remote API failures
are modelled as :class:`PipelineAPIError` subclasses so the lifecycle
orchestrator can classify them (not-found, unreachable, permission-denied)
without depending on a particular transport.
"""

from __future__ import annotations

# ============================================================================
# Base Exception
# ============================================================================


class PipectlError(Exception):
    """Base exception for all pipectl errors.

    Catch this to handle every pipectl-specific error.
    """

    pass


# ============================================================================
# Configuration & Validation Errors
# ============================================================================


class ConfigurationError(PipectlError):
    """Raised when configuration is invalid or missing.

    Examples
    --------
    Example usage::

        raise ConfigurationError("state_file", "parent directory does not exist")
    """

    def __init__(self, component: str, reason: str) -> None:
        """Initialize configuration error.

        Args
        ----
            component: Name of the component with invalid configuration
            reason: Explanation of what's wrong
        """
        super().__init__(f"Configuration error in '{component}': {reason}")
        self.component = component
        self.reason = reason


class ValidationError(PipectlError):
    """Raised when data validation fails.

    Examples
    --------
    Example usage::

        raise ValidationError("cpu_shares", "must be a multiple of 100m", value="150m")
    """

    def __init__(self, field: str, constraint: str, value: object = None) -> None:
        """Initialize validation error.

        Args
        ----
            field: Name of the field that failed validation
            constraint: Description of the validation constraint
            value: The invalid value (optional)
        """
        if value is not None:
            msg = f"Validation failed for '{field}': {constraint} (got {value!r})"
        else:
            msg = f"Validation failed for '{field}': {constraint}"
        super().__init__(msg)
        self.field = field
        self.constraint = constraint
        self.value = value


# ============================================================================
# Remote API Errors
# ============================================================================


class PipelineAPIError(PipectlError):
    """Raised when a call to the remote pipeline API fails.

    Attributes
    ----------
    status_code : int | None
        HTTP status code when the failure came from a response.
    body : object
        The response body, if any.
    """

    def __init__(self, message: str, status_code: int | None = None, body: object = None) -> None:
        self.status_code = status_code
        self.body = body
        super().__init__(message)


class PipelineNotFoundError(PipelineAPIError):
    """The remote object (pipeline or cluster) does not exist."""


class ClusterUnreachableError(PipelineAPIError):
    """The cluster API cannot be reached (DNS failure, connection refused)."""


class PermissionDeniedError(PipelineAPIError):
    """The credentials are not allowed to perform the call."""


class ClientCreationError(PipectlError):
    """Raised when a pipeline API client cannot be constructed."""

    def __init__(self, cluster_api_url: str, reason: str) -> None:
        self.cluster_api_url = cluster_api_url
        self.reason = reason
        super().__init__(reason)


class ImportIdentifierError(PipectlError):
    """Raised when an import identifier is not ``<pipeline_id>,<cluster_id>``."""

    def __init__(self, import_id: str) -> None:
        self.import_id = import_id
        super().__init__(
            f"wrong import ID format: {import_id!r}. "
            "Import ID format is <pipeline_id>,<cluster_id>"
        )


# ============================================================================
# Error classification
# ============================================================================


def is_not_found(err: BaseException | None) -> bool:
    """Check whether an error means the remote object does not exist."""
    if err is None:
        return False
    if isinstance(err, PipelineNotFoundError):
        return True
    if isinstance(err, PipelineAPIError) and err.status_code == 404:
        return True
    text = str(err)
    lowered = text.lower()
    return "not found" in lowered or "404" in text or "does not exist" in lowered


def is_permission_denied(err: BaseException | None) -> bool:
    """Check whether an error is a permission / ACL failure."""
    if err is None:
        return False
    if isinstance(err, PermissionDeniedError):
        return True
    if isinstance(err, PipelineAPIError) and err.status_code == 403:
        return True
    text = str(err)
    lowered = text.lower()
    return "forbidden" in lowered or "missing required acls" in lowered or "403" in text


def is_cluster_unreachable(err: BaseException | None) -> bool:
    """Check whether an error means the cluster API cannot be reached.

    Read uses this to decide whether a tracked pipeline may be dropped; the
    ``allow_deletion`` policy still applies on top of it.
    """
    if err is None:
        return False
    if isinstance(err, ClusterUnreachableError):
        return True
    text = str(err)
    if "name resolver error" in text and "produced zero addresses" in text:
        return True
    lowered = text.lower()
    return "connection refused" in lowered or "name or service not known" in lowered


def describe_error(err: BaseException) -> str:
    """Render an exception for a diagnostic detail line."""
    if isinstance(err, PipelineAPIError) and err.status_code is not None:
        return f"{err.status_code} : {err}"
    return str(err)
