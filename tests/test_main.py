"""
Tests for the command-line entry point.
"""

from unittest.mock import patch

from ec2_rotating_imager.__main__ import build_parser, main


class TestMain:

    def test_parser_defaults_leave_environment_in_charge(self):
        args = build_parser().parse_args([])
        assert args.copies is None
        assert args.region is None
        assert args.dry_run is None
        assert args.log_level is None

    def test_log_level_is_case_insensitive(self):
        assert build_parser().parse_args(['--log-level', 'debug']).log_level == 'DEBUG'

    @patch('ec2_rotating_imager.__main__.setup_logging')
    @patch('ec2_rotating_imager.__main__.run')
    @patch('ec2_rotating_imager.__main__.boto3')
    def test_runs_with_flags(self, mock_boto3, mock_run, mock_setup_logging, monkeypatch):
        monkeypatch.delenv('COPIES', raising=False)
        assert main(['--copies', '5', '--region', 'ap-south-1', '--dry-run']) == 0

        mock_boto3.client.assert_called_once_with('ec2', region_name='ap-south-1')
        client, config = mock_run.call_args[0]
        assert client is mock_boto3.client.return_value
        assert config.copies == 5
        assert config.dry_run is True

    @patch('ec2_rotating_imager.__main__.setup_logging')
    @patch('ec2_rotating_imager.__main__.run')
    @patch('ec2_rotating_imager.__main__.boto3')
    def test_invalid_copies_exits_with_error(self, mock_boto3, mock_run, mock_setup_logging):
        assert main(['--copies', '0']) == 1
        mock_boto3.client.assert_not_called()
        mock_run.assert_not_called()
