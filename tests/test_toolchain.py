# =============================================================================
# CHASM TOOLCHAIN TESTS
# =============================================================================
# Tests for the solc / svm subprocess wrapper.
# =============================================================================

import json
import subprocess
from unittest.mock import MagicMock, patch

import pytest


def _completed(returncode=0, stdout="", stderr=""):
    return MagicMock(returncode=returncode, stdout=stdout, stderr=stderr)


class TestCompileStandardJson:
    """Test Toolchain.compile_standard_json."""

    @patch("chasm.infra.toolchain.subprocess.run")
    def test_invocation(self, mock_run, tmp_path):
        """solc is called in standard-JSON mode with the root as base path."""
        from chasm.infra.toolchain import Toolchain

        mock_run.return_value = _completed(stdout='{"contracts": {}}')
        compiler_input = {"language": "Solidity", "sources": {}}

        output = Toolchain().compile_standard_json(compiler_input, tmp_path)

        assert output == {"contracts": {}}
        cmd = mock_run.call_args[0][0]
        assert cmd[:2] == ["solc", "--standard-json"]
        assert cmd[cmd.index("--base-path") + 1] == str(tmp_path)
        assert cmd[cmd.index("--allow-paths") + 1] == str(tmp_path)
        assert json.loads(mock_run.call_args[1]["input"]) == compiler_input

    @patch("chasm.infra.toolchain.subprocess.run")
    def test_custom_binary(self, mock_run, tmp_path):
        """The configured binary is used."""
        from chasm.infra.toolchain import Toolchain

        mock_run.return_value = _completed(stdout="{}")
        Toolchain(solc_binary="/opt/solc").compile_standard_json({}, tmp_path)

        assert mock_run.call_args[0][0][0] == "/opt/solc"

    @patch("chasm.infra.toolchain.subprocess.run")
    def test_missing_binary(self, mock_run, tmp_path):
        """A missing executable is a ToolchainError."""
        from chasm.infra.toolchain import Toolchain, ToolchainError

        mock_run.side_effect = FileNotFoundError("solc")
        with pytest.raises(ToolchainError, match="Executable not found"):
            Toolchain().compile_standard_json({}, tmp_path)

    @patch("chasm.infra.toolchain.subprocess.run")
    def test_nonzero_exit(self, mock_run, tmp_path):
        """A crash keeps stderr in the error."""
        from chasm.infra.toolchain import Toolchain, ToolchainError

        mock_run.return_value = _completed(returncode=1, stderr="segfault")
        with pytest.raises(ToolchainError) as exc_info:
            Toolchain().compile_standard_json({}, tmp_path)

        assert "segfault" in str(exc_info.value)
        assert exc_info.value.output == "segfault"

    @patch("chasm.infra.toolchain.subprocess.run")
    def test_timeout(self, mock_run, tmp_path):
        """A hung compiler is a ToolchainError."""
        from chasm.infra.toolchain import Toolchain, ToolchainError

        mock_run.side_effect = subprocess.TimeoutExpired("solc", 120)
        with pytest.raises(ToolchainError, match="timed out"):
            Toolchain().compile_standard_json({}, tmp_path)

    @patch("chasm.infra.toolchain.subprocess.run")
    def test_malformed_output(self, mock_run, tmp_path):
        """Non-JSON stdout is a ToolchainError."""
        from chasm.infra.toolchain import Toolchain, ToolchainError

        mock_run.return_value = _completed(stdout="Warning: not json")
        with pytest.raises(ToolchainError, match="Malformed"):
            Toolchain().compile_standard_json({}, tmp_path)

    @patch("chasm.infra.toolchain.subprocess.run")
    def test_non_object_output(self, mock_run, tmp_path):
        """A JSON value that is not an object is rejected."""
        from chasm.infra.toolchain import Toolchain, ToolchainError

        mock_run.return_value = _completed(stdout="[1, 2]")
        with pytest.raises(ToolchainError):
            Toolchain().compile_standard_json({}, tmp_path)


class TestVersionManager:
    """Test install / use."""

    @patch("chasm.infra.toolchain.subprocess.run")
    def test_install_and_use(self, mock_run):
        """svm is called with the plain version string."""
        from chasm.infra.toolchain import Toolchain

        mock_run.return_value = _completed()
        toolchain = Toolchain()
        toolchain.install("0.8.19")
        toolchain.use("0.8.19")

        commands = [c[0][0] for c in mock_run.call_args_list]
        assert commands == [["svm", "install", "0.8.19"], ["svm", "use", "0.8.19"]]

    @patch("chasm.infra.toolchain.subprocess.run")
    def test_install_failure(self, mock_run):
        """Version-manager failures are ToolchainAlignError."""
        from chasm.infra.toolchain import Toolchain, ToolchainAlignError, ToolchainError

        mock_run.return_value = _completed(returncode=1, stderr="no such version")
        with pytest.raises(ToolchainAlignError) as exc_info:
            Toolchain().install("0.0.1")

        assert isinstance(exc_info.value, ToolchainError)
        assert "no such version" in str(exc_info.value)

    @patch("chasm.infra.toolchain.subprocess.run")
    def test_missing_version_manager(self, mock_run):
        """A missing svm binary surfaces as ToolchainAlignError."""
        from chasm.infra.toolchain import Toolchain, ToolchainAlignError

        mock_run.side_effect = FileNotFoundError("svm")
        with pytest.raises(ToolchainAlignError):
            Toolchain().use("0.8.19")
