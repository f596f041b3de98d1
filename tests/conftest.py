"""Shared pytest fixtures for the gateway tests."""

import logging

import pytest

from perplexity_mcp.config.schema import ServerConfig


@pytest.fixture
def config() -> ServerConfig:
    """Config with access control disabled and all origins allowed."""
    return ServerConfig(upstream_api_key="pplx-test")


@pytest.fixture
def secured_config() -> ServerConfig:
    """Config requiring the shared secret 's3cret'."""
    return ServerConfig(
        upstream_api_key="pplx-test",
        shared_secret="s3cret",
        allowed_origins=("https://a.com",),
    )


@pytest.fixture
def restore_logging():
    """Undo configure_server_logging() so caplog keeps working."""
    pkg_logger = logging.getLogger("perplexity_mcp")
    saved = (list(pkg_logger.handlers), pkg_logger.level, pkg_logger.propagate)
    yield
    for handler in list(pkg_logger.handlers):
        pkg_logger.removeHandler(handler)
        if handler not in saved[0]:
            handler.close()
    for handler in saved[0]:
        pkg_logger.addHandler(handler)
    pkg_logger.setLevel(saved[1])
    pkg_logger.propagate = saved[2]
