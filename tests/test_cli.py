import logging

import pytest
import requests
import typer
from typer.testing import CliRunner

from rbkops.cli.cli import app
from rbkops.cli.common.exits import handled_errors
from rbkops.core.errors import ObjectNotFound, OperationCancelled

runner = CliRunner()


@pytest.fixture(autouse=True)
def _restore_logging():
    logger = logging.getLogger("rbkops")
    yield
    logger.handlers.clear()
    logger.setLevel(logging.NOTSET)
    logger.propagate = True


def test_root_help_lists_command_groups():
    result = runner.invoke(app, ["--help"])

    assert result.exit_code == 0
    for group in ("vm", "snapshot", "mount", "sla", "fileset", "sql", "api"):
        assert group in result.output


def test_group_without_subcommand_prints_help():
    result = runner.invoke(app, ["mount"])

    assert result.exit_code == 0
    assert "migrate-cleanup" in result.output


def test_missing_server_exits_with_error():
    result = runner.invoke(app, ["vm", "get"])

    assert result.exit_code != 0


@pytest.mark.parametrize(
    "exc, code",
    [
        (OperationCancelled("declined"), 0),
        (ObjectNotFound("Virtual machine 'x' not found"), 1),
        (requests.ConnectionError("refused"), 1),
    ],
)
def test_handled_errors_exit_codes(exc, code):
    with pytest.raises(typer.Exit) as excinfo:
        with handled_errors():
            raise exc

    assert excinfo.value.exit_code == code
