"""Tests for VmStatus enum."""

from vmlauncher.launcher.domain.vm_status import VmStatus


class TestVmStatus:
    """Test cases for VmStatus enum."""

    def test_status_values(self) -> None:
        """Test that status values are lowercase strings."""
        assert VmStatus.PENDING == "pending"
        assert VmStatus.RUNNING == "running"
        assert VmStatus.COMPLETED == "completed"
        assert VmStatus.FAILED == "failed"
        assert VmStatus.CANCELLED == "cancelled"

    def test_is_terminal(self) -> None:
        """Test terminal status detection."""
        assert not VmStatus.PENDING.is_terminal()
        assert not VmStatus.RUNNING.is_terminal()
        assert VmStatus.COMPLETED.is_terminal()
        assert VmStatus.FAILED.is_terminal()
        assert VmStatus.CANCELLED.is_terminal()

    def test_is_successful(self) -> None:
        """Test successful status detection."""
        assert VmStatus.COMPLETED.is_successful()
        assert not VmStatus.FAILED.is_successful()
        assert not VmStatus.CANCELLED.is_successful()
        assert not VmStatus.RUNNING.is_successful()
