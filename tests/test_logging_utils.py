import io
import logging

import pytest

from quadric_simplify import MeshDecimator
from quadric_simplify.logging_utils import ROOT_LOGGER_NAME, configure_logging, get_logger


def test_loggers_live_under_package_namespace():
    assert get_logger("custom").name == f"{ROOT_LOGGER_NAME}.custom"
    assert get_logger(f"{ROOT_LOGGER_NAME}.qem").name == f"{ROOT_LOGGER_NAME}.qem"
    assert get_logger("custom", level="debug").level == logging.DEBUG


def test_configure_logging_routes_decimator_output(octahedron):
    stream = io.StringIO()
    configure_logging("INFO", stream=stream)
    MeshDecimator().decimate(octahedron)
    assert "Decimation complete" in stream.getvalue()


def test_configure_logging_replaces_its_handler():
    configure_logging("INFO", stream=io.StringIO())
    root = configure_logging("WARNING", stream=io.StringIO())
    stream_handlers = [h for h in root.handlers if type(h) is logging.StreamHandler]
    assert len(stream_handlers) == 1
    assert root.level == logging.WARNING


def test_unknown_level_raises():
    with pytest.raises(ValueError):
        configure_logging("LOUD")
