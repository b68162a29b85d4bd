"""
Unit tests for CLI module.
"""

import unittest
from unittest.mock import MagicMock, patch

from cli import build_parser, main
from errors import ConfigError


class TestCLI(unittest.TestCase):
    """Test CLI argument parsing and entry point."""

    def test_build_parser_needs_no_arguments(self):
        """Test the parser accepts a bare invocation."""
        args = build_parser().parse_args([])
        self.assertFalse(args.verbose)

    def test_parser_verbose(self):
        """Test the verbose flag."""
        args = build_parser().parse_args(["--verbose"])
        self.assertTrue(args.verbose)

    def test_parser_rejects_unknown_arguments(self):
        """Test unknown arguments are rejected."""
        with self.assertRaises(SystemExit):
            build_parser().parse_args(["--project", "p"])

    @patch("cli.ServiceUpgrader")
    @patch("cli.setup_logging")
    @patch("cli.UpgraderConfig")
    def test_main_success(self, mock_config_class, mock_setup_logging, mock_upgrader_class):
        """Test main returns 0 when the upgrade succeeds."""
        mock_config = MagicMock()
        mock_config.verbose = False
        mock_config.log_file = "rancher-upgrade.log"
        mock_config_class.from_env.return_value = mock_config

        mock_upgrader = MagicMock()
        mock_upgrader.run.return_value = MagicMock(status="success")
        mock_upgrader_class.return_value = mock_upgrader

        result = main([])

        self.assertEqual(result, 0)
        mock_upgrader_class.assert_called_once_with(mock_config)
        mock_upgrader.run.assert_called_once_with()
        mock_setup_logging.assert_called_once_with(
            verbose=False, log_file="rancher-upgrade.log"
        )

    @patch("cli.ServiceUpgrader")
    @patch("cli.setup_logging")
    @patch("cli.UpgraderConfig")
    def test_main_returns_failure_exit_code(
        self, mock_config_class, mock_setup_logging, mock_upgrader_class
    ):
        """Test main returns exit code 1 when the upgrade fails."""
        mock_config_class.from_env.return_value = MagicMock(verbose=False, log_file="")
        mock_upgrader_class.return_value.run.return_value = MagicMock(status="failed")

        self.assertEqual(main([]), 1)

    @patch("cli.ServiceUpgrader")
    @patch("cli.setup_logging")
    @patch("cli.UpgraderConfig")
    def test_main_verbose_and_no_log_file(
        self, mock_config_class, mock_setup_logging, mock_upgrader_class
    ):
        """Test --verbose wins and an empty log file disables file logging."""
        mock_config_class.from_env.return_value = MagicMock(verbose=False, log_file="")
        mock_upgrader_class.return_value.run.return_value = MagicMock(status="success")

        main(["--verbose"])

        mock_setup_logging.assert_called_once_with(verbose=True, log_file=None)

    @patch("cli.ServiceUpgrader")
    @patch("cli.setup_logging")
    @patch("cli.UpgraderConfig")
    def test_main_config_error(
        self, mock_config_class, mock_setup_logging, mock_upgrader_class
    ):
        """Test a configuration error exits non-zero without upgrading."""
        mock_config_class.from_env.side_effect = ConfigError("RANCHER_URL is required")

        self.assertEqual(main([]), 1)
        mock_upgrader_class.assert_not_called()


if __name__ == "__main__":
    unittest.main()
