import logging

from tabular_translator.logging_utils import HANDLER_NAME, configure_logging


def test_configure_logging_replaces_its_own_handler():
    root = logging.getLogger()
    previous_level = root.level
    try:
        configure_logging("debug")
        handler = configure_logging("warning")

        ours = [h for h in root.handlers if h.get_name() == HANDLER_NAME]
        assert ours == [handler]
        assert root.level == logging.WARNING
        assert logging.getLogger("httpx").level == logging.WARNING
    finally:
        for h in list(root.handlers):
            if h.get_name() == HANDLER_NAME:
                root.removeHandler(h)
        root.setLevel(previous_level)
