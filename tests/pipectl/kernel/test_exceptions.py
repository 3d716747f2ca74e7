"""Tests for the pipectl exception hierarchy and error classification."""

from __future__ import annotations

import pytest

from pipectl.kernel.exceptions import (
    ClientCreationError,
    ClusterUnreachableError,
    ConfigurationError,
    ImportIdentifierError,
    PermissionDeniedError,
    PipectlError,
    PipelineAPIError,
    PipelineNotFoundError,
    ValidationError,
    describe_error,
    is_cluster_unreachable,
    is_not_found,
    is_permission_denied,
)


class TestHierarchy:
    @pytest.mark.parametrize(
        "error",
        [
            ConfigurationError("state_file", "missing"),
            ValidationError("cpu_shares", "bad"),
            PipelineAPIError("boom"),
            PipelineNotFoundError("gone"),
            ClusterUnreachableError("dns"),
            PermissionDeniedError("no"),
            ClientCreationError("", "empty url"),
            ImportIdentifierError("abc"),
        ],
    )
    def test_all_inherit_from_base(self, error: PipectlError) -> None:
        assert isinstance(error, PipectlError)

    def test_configuration_error_message(self) -> None:
        err = ConfigurationError("logging.level", "unknown level")
        assert str(err) == "Configuration error in 'logging.level': unknown level"
        assert err.component == "logging.level"

    def test_validation_error_includes_value(self) -> None:
        err = ValidationError("cpu_shares", "must be a multiple of 100m", value="150m")
        assert "'150m'" in str(err)

    def test_import_identifier_error_names_format(self) -> None:
        assert "<pipeline_id>,<cluster_id>" in str(ImportIdentifierError("abc"))


class TestClassification:
    def test_not_found_by_type_status_and_text(self) -> None:
        assert is_not_found(PipelineNotFoundError("x"))
        assert is_not_found(PipelineAPIError("x", status_code=404))
        assert is_not_found(RuntimeError("pipeline does not exist"))
        assert is_not_found(RuntimeError("Resource Not Found"))
        assert not is_not_found(PipelineAPIError("boom", status_code=500))
        assert not is_not_found(None)

    def test_permission_denied(self) -> None:
        assert is_permission_denied(PermissionDeniedError("x"))
        assert is_permission_denied(PipelineAPIError("x", status_code=403))
        assert is_permission_denied(RuntimeError("missing required ACLs"))
        assert not is_permission_denied(PipelineAPIError("x", status_code=500))

    def test_cluster_unreachable(self) -> None:
        assert is_cluster_unreachable(ClusterUnreachableError("x"))
        assert is_cluster_unreachable(
            RuntimeError("name resolver error: produced zero addresses")
        )
        assert is_cluster_unreachable(RuntimeError("dial tcp: Connection refused"))
        assert not is_cluster_unreachable(RuntimeError("name resolver error"))
        assert not is_cluster_unreachable(PipelineAPIError("x", status_code=404))

    def test_describe_error(self) -> None:
        assert describe_error(PipelineAPIError("bad request", status_code=400)) == "400 : bad request"
        assert describe_error(PipelineAPIError("offline")) == "offline"
