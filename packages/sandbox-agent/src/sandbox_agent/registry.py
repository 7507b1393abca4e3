"""Registry of protocol methods and their handlers."""

from __future__ import annotations

import inspect
from dataclasses import dataclass
from typing import Any, Callable

from pydantic import ValidationError as PydanticValidationError

from sandbox_agent.errors import InvalidParamsError, MethodNotFoundError
from sandbox_agent.params import NoParams, Params


@dataclass
class RegisteredMethod:
    """A method registered in the registry."""

    name: str
    handler: Callable[..., Any]
    params_model: type[Params] = NoParams


class MethodRegistry:
    """Maps method names to handlers with validated parameters."""

    def __init__(self) -> None:
        self._methods: dict[str, RegisteredMethod] = {}

    def register(
        self,
        name: str,
        handler: Callable[..., Any],
        params_model: type[Params] = NoParams,
    ) -> None:
        """Register a method. Latest registration wins on name collision."""
        self._methods[name] = RegisteredMethod(name=name, handler=handler, params_model=params_model)

    def unregister(self, name: str) -> bool:
        return self._methods.pop(name, None) is not None

    def get(self, name: str) -> RegisteredMethod | None:
        return self._methods.get(name)

    def names(self) -> list[str]:
        return list(self._methods.keys())

    async def dispatch(self, name: str, raw_params: dict[str, Any], *args: Any) -> Any:
        """Validate params and invoke the handler. Extra positional args go first."""
        method = self._methods.get(name)
        if method is None:
            raise MethodNotFoundError(name)
        try:
            params = method.params_model.model_validate(raw_params)
        except PydanticValidationError as e:
            raise InvalidParamsError(f"Invalid params for {name}: {e}") from e
        result = method.handler(*args, params)
        if inspect.isawaitable(result):
            result = await result
        return result

    def __len__(self) -> int:
        return len(self._methods)

    def __contains__(self, name: str) -> bool:
        return name in self._methods
