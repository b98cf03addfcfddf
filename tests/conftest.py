import logging


def pytest_configure(config):  # pylint: disable=unused-argument
    # let pytest capture everything spacealloc logs, failures show it
    logging.getLogger("spacealloc").setLevel(logging.DEBUG)
    logging.getLogger("program").setLevel(logging.DEBUG)
