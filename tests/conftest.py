from os import environ

import pytest

from pydyno.connection import Connection

from .data import REGION


@pytest.fixture(scope="session", autouse=True)
def aws_credentials() -> None:
    environ["AWS_ACCESS_KEY_ID"] = "testing"
    environ["AWS_SECRET_ACCESS_KEY"] = "testing"
    environ["AWS_SESSION_TOKEN"] = "testing"
    environ["AWS_DEFAULT_REGION"] = REGION


@pytest.fixture
def connection() -> Connection:
    return Connection(region=REGION)
