"""Test fixtures and factories."""

from tests.fixtures.handlers import (
    GreetRequest,
    GreetResponse,
    async_echo,
    create_test_registry,
    echo,
    explode,
    fruit,
    greet,
)

__all__ = [
    "GreetRequest",
    "GreetResponse",
    "async_echo",
    "create_test_registry",
    "echo",
    "explode",
    "fruit",
    "greet",
]
