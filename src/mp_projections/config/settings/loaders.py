"""Config settings – EnvSettingsLoader, DotenvSettingsLoader."""
from __future__ import annotations

import abc
import dataclasses
import os
import types
import typing
from typing import Any, Mapping, TypeVar

from dotenv import dotenv_values

from mp_projections.config.settings.base import ProjectionSettings, Settings
from mp_projections.config.validation import (
    ConfigError,
    InvalidSettingValueError,
    MissingRequiredSettingError,
)

T = TypeVar("T", bound=Settings)

_TRUTHY = frozenset({"1", "true", "yes", "on"})


class SettingsLoader(abc.ABC):
    """Port: load settings from an external source."""

    @abc.abstractmethod
    def load(self, settings_class: type[T]) -> T: ...


class EnvSettingsLoader(SettingsLoader):
    """Load settings from variables named ``<PREFIX>_<FIELD>`` (upper-cased).

    Reads ``os.environ`` unless *environ* is given. Fields without a default
    must be present.
    """

    def __init__(self, environ: Mapping[str, str] | None = None) -> None:
        self._environ = environ

    def load(self, settings_class: type[T]) -> T:
        environ = os.environ if self._environ is None else self._environ
        prefix = settings_class._prefix.upper()
        hints = typing.get_type_hints(settings_class)
        kwargs: dict[str, Any] = {}

        for field in dataclasses.fields(settings_class):  # type: ignore[arg-type]
            key = f"{prefix}_{field.name}".upper() if prefix else field.name.upper()
            raw = environ.get(key)
            if raw is None:
                if field.default is dataclasses.MISSING and field.default_factory is dataclasses.MISSING:
                    raise MissingRequiredSettingError(key)
                continue
            try:
                kwargs[field.name] = _coerce(raw, hints.get(field.name, str))
            except ValueError as exc:
                raise InvalidSettingValueError(key, raw, str(exc)) from exc

        try:
            return settings_class(**kwargs)
        except ConfigError:
            raise
        except Exception as exc:
            raise ConfigError(f"Failed to load {settings_class.__name__}: {exc}", cause=exc) from exc


class DotenvSettingsLoader(SettingsLoader):
    """Layer a ``.env`` file under the process environment.

    Process variables win unless *override* is set. ``os.environ`` itself is
    never modified.
    """

    def __init__(self, env_file: str = ".env", override: bool = False) -> None:
        self._env_file = env_file
        self._override = override

    def load(self, settings_class: type[T]) -> T:
        from_file = {k: v for k, v in dotenv_values(self._env_file).items() if v is not None}
        merged = {**os.environ, **from_file} if self._override else {**from_file, **os.environ}
        return EnvSettingsLoader(merged).load(settings_class)


def load_projection_settings(env_file: str | None = None) -> ProjectionSettings:
    """Load :class:`ProjectionSettings` from the environment (and *env_file*, if given)."""
    loader: SettingsLoader = DotenvSettingsLoader(env_file) if env_file else EnvSettingsLoader()
    return loader.load(ProjectionSettings)


def _coerce(value: str, hint: Any) -> Any:  # noqa: PLR0911
    origin = typing.get_origin(hint)
    if origin in (typing.Union, types.UnionType):
        args = [a for a in typing.get_args(hint) if a is not type(None)]
        return _coerce(value, args[0]) if len(args) == 1 else value
    if hint is bool:
        return value.strip().lower() in _TRUTHY
    if hint is int:
        return int(value)
    if hint is float:
        return float(value)
    if origin in (list, tuple, set, frozenset):
        return origin(v.strip() for v in value.split(",") if v.strip())
    return value


__all__ = [
    "DotenvSettingsLoader",
    "EnvSettingsLoader",
    "SettingsLoader",
    "load_projection_settings",
]
