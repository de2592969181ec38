import logging

from embedkit.logging_utils import configure_logging, get_logger


def test_get_logger_returns_package_children() -> None:
    assert get_logger().name == "embedkit"
    assert get_logger("pipeline").name == "embedkit.pipeline"
    assert get_logger("pipeline").parent is get_logger()


def test_configure_logging_quiets_http_stack_unless_verbose() -> None:
    configure_logging(verbose=False)
    assert logging.getLogger("urllib3").level == logging.WARNING
    configure_logging(verbose=True)
    assert logging.getLogger("urllib3").level == logging.DEBUG
