import logging

from taskgraph.core.log import ROOT_LOGGER, configure_logging, get_logger


def test_configure_logging_replaces_handler():
    configure_logging("INFO")
    logger = configure_logging("debug")
    assert logger.name == ROOT_LOGGER
    assert logger.level == logging.DEBUG
    assert len(logger.handlers) == 1
    configure_logging("WARNING")


def test_module_loggers_propagate_to_package_logger(capsys):
    configure_logging("INFO")
    get_logger("taskgraph.core.graph.dependencies").info("added dependency 7")
    configure_logging("WARNING")
    err = capsys.readouterr().err
    assert "taskgraph.core.graph.dependencies - INFO - added dependency 7" in err
