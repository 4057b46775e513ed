import pytest

from fakes import make_config, make_container
from messenger_bot.handlers.dispatcher import Dispatcher


@pytest.fixture
def config():
    return make_config()


@pytest.fixture
def container(config):
    return make_container(config)


@pytest.fixture
def dispatcher(container):
    return Dispatcher(container)


@pytest.fixture
def client(container):
    return container.messenger_client


@pytest.fixture
def users(container):
    return container.user_service
