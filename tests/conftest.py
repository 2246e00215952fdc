"""Shared test fixtures for tailnet-mcp."""

from __future__ import annotations

import pytest

from tailnet_mcp.models import ToolContext
from tailnet_mcp.tools import ToolRegistry, acl_tools, admin_tools, device_tools, network_tools
from tests.fixtures.backend import FakeBackend


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def context(backend: FakeBackend) -> ToolContext:
    return ToolContext(backend=backend)


@pytest.fixture
def empty_registry(context: ToolContext) -> ToolRegistry:
    return ToolRegistry(context)


@pytest.fixture
def registry(context: ToolContext) -> ToolRegistry:
    """Registry with every production tool group registered."""
    reg = ToolRegistry(context)
    device_tools.register_tools(reg)
    network_tools.register_tools(reg)
    acl_tools.register_tools(reg)
    admin_tools.register_tools(reg)
    return reg
