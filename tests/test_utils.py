import logging

import pytest
import taichi as ti

from stablefluids.errors import ConfigError
from stablefluids.logging_config import logging_from_config, setup_logging
from stablefluids.utils import backend, load_yaml, precision


def test_backend_names():
    assert backend("cpu") == ti.cpu
    assert backend("VK") == ti.vulkan
    with pytest.raises(ConfigError):
        backend("abacus")


def test_precision_names():
    assert precision("f32") == ti.f32
    with pytest.raises(ConfigError):
        precision("f8")


def test_load_yaml_requires_mapping(tmp_path):
    path = tmp_path / "list.yaml"
    path.write_text("- 1\n- 2\n", encoding="utf-8")
    with pytest.raises(ConfigError):
        load_yaml(path)

    empty = tmp_path / "empty.yaml"
    empty.write_text("", encoding="utf-8")
    assert load_yaml(empty) == {}


@pytest.fixture
def package_logger():
    logger = logging.getLogger("stablefluids")
    yield logger
    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)


def test_setup_logging_writes_to_file(tmp_path, package_logger):
    log_file = tmp_path / "run.log"
    setup_logging("debug", str(log_file))
    setup_logging("debug", str(log_file))

    assert len(package_logger.handlers) == 2
    logging.getLogger("stablefluids.test").debug("hello")
    for handler in package_logger.handlers:
        handler.flush()
    assert "hello" in log_file.read_text(encoding="utf-8")


def test_logging_level_from_yaml(tmp_path, package_logger):
    path = tmp_path / "params.yaml"
    path.write_text("logging:\n  level: warning\n  file: null\n", encoding="utf-8")

    logging_from_config(load_yaml(path))
    assert package_logger.level == logging.WARNING
    assert len(package_logger.handlers) == 1

    logging_from_config(load_yaml(path), debug=True)
    assert package_logger.level == logging.DEBUG

    logging_from_config({})
    assert package_logger.level == logging.INFO


def test_unknown_logging_level(package_logger):
    with pytest.raises(ConfigError):
        setup_logging("chatty")
    with pytest.raises(ConfigError):
        logging_from_config({"logging": ["INFO"]})
