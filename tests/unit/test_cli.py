"""Tests for reminders/cli.py"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from reminders.cli import build_parser, main, run_once
from reminders.mobile.config import ReminderConfig
from reminders.mobile.errors import ConfigurationError, DatastoreError
from reminders.mobile.models import RunReport


@pytest.fixture
def job():
    job = MagicMock()
    job.run = AsyncMock(return_value=RunReport(now=None))
    return job


class TestBuildParser:
    def test_default_config(self):
        assert build_parser().parse_args([]).config is None

    def test_config_option(self):
        assert build_parser().parse_args(["--config", "x.yaml"]).config == "x.yaml"


class TestRunOnce:
    def test_success(self, job):
        with patch("reminders.mobile.config.load_config", return_value=ReminderConfig()) as load, \
                patch("reminders.mobile.job.bootstrap", return_value=job):
            assert run_once("custom.yaml") == 0

        load.assert_called_once_with("custom.yaml")
        job.run.assert_awaited_once()
        job.close.assert_called_once_with()

    def test_bootstrap_failure(self):
        with patch("reminders.mobile.config.load_config", return_value=ReminderConfig()), \
                patch("reminders.mobile.job.bootstrap", side_effect=ConfigurationError("no credentials")):
            assert run_once() == 1

    def test_bad_config(self):
        with patch("reminders.mobile.config.load_config", side_effect=ConfigurationError("bad yaml")):
            assert run_once() == 1

    def test_run_failure(self, job):
        job.run.side_effect = DatastoreError("query failed")

        with patch("reminders.mobile.config.load_config", return_value=ReminderConfig()), \
                patch("reminders.mobile.job.bootstrap", return_value=job):
            assert run_once() == 1

        job.close.assert_called_once_with()


class TestMain:
    def test_sets_up_logging_and_runs(self):
        with patch("reminders.cli.setup_logging") as setup, \
                patch("reminders.cli.run_once", return_value=0) as run:
            assert main(["--config", "x.yaml"]) == 0

        setup.assert_called_once_with()
        run.assert_called_once_with("x.yaml")
