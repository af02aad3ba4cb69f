"""
Layered settings resolution.

Precedence is an ordered chain of named steps; the first step that finds a
value wins and its stored JSON is returned whole (layers are never merged):

    user_override    -> user setting, only for always-user-overridable categories
    project_override -> enabled project setting
    user_preference  -> user setting
    global_default   -> system-wide setting
    system_default   -> hardcoded table

Store failures raise SettingsResolutionError instead of falling through to a
lower layer, so a broken store is never mistaken for "no override".
"""

from __future__ import annotations

import copy
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Optional, Sequence

import structlog

from pms_api.core.exceptions import SettingsResolutionError
from pms_api.core.setting_defaults import ALWAYS_USER_OVERRIDABLE, SYSTEM_DEFAULTS, SettingScope

logger = structlog.get_logger()


@dataclass(frozen=True)
class StoredSetting:
    value: Any
    enabled: bool = True


@dataclass(frozen=True)
class ResolvedSetting:
    value: Any
    source: str
    enabled: bool
    step: Optional[str] = field(default=None, compare=False)

    def to_dict(self) -> dict[str, Any]:
        return {"value": self.value, "source": self.source, "enabled": self.enabled}


class SettingsStore(ABC):
    """Read side of the settings store"""

    @abstractmethod
    async def find_setting(self, scope: SettingScope, owner_id: Any, category: str) -> Optional[StoredSetting]:
        """owner_id is a user id, a project id, or None for the global scope"""
        raise NotImplementedError


class ResolutionContext:
    """Per-call state; each layer is read from the store at most once"""

    def __init__(
        self,
        store: SettingsStore,
        category: str,
        user_id: Any,
        project_id: Any,
        always_user_overridable: frozenset[str],
        system_defaults: Mapping[str, Any],
    ):
        self.store = store
        self.category = category
        self.user_id = user_id
        self.project_id = project_id
        self.always_user_overridable = always_user_overridable
        self.system_defaults = system_defaults
        self._reads: dict[SettingScope, Optional[StoredSetting]] = {}

    def owner_for(self, scope: SettingScope) -> Any:
        if scope == SettingScope.USER:
            return self.user_id
        if scope == SettingScope.PROJECT:
            return self.project_id
        return None

    async def lookup(self, scope: SettingScope) -> Optional[StoredSetting]:
        if scope in self._reads:
            return self._reads[scope]

        owner_id = self.owner_for(scope)
        if scope != SettingScope.GLOBAL and owner_id is None:
            self._reads[scope] = None
            return None

        try:
            found = await self.store.find_setting(scope, owner_id, self.category)
        except Exception as e:
            logger.error(
                "Settings store read failed",
                scope=scope.value,
                owner_id=str(owner_id) if owner_id is not None else None,
                category=self.category,
                error=str(e),
            )
            raise SettingsResolutionError(
                f"Could not read {scope.value} setting '{self.category}'"
            ) from e

        self._reads[scope] = found
        return found


class ResolutionStep(ABC):
    name: str

    @abstractmethod
    async def resolve(self, ctx: ResolutionContext) -> Optional[ResolvedSetting]:
        raise NotImplementedError


@dataclass(frozen=True)
class LayerStep(ResolutionStep):
    """
    Take the value stored at one layer.

    only_overridable restricts the step to always-user-overridable categories;
    require_enabled skips rows whose enabled flag is off.
    """
    name: str
    scope: SettingScope
    reports_enabled: bool = True
    only_overridable: bool = False
    require_enabled: bool = False

    async def resolve(self, ctx: ResolutionContext) -> Optional[ResolvedSetting]:
        if self.only_overridable and ctx.category not in ctx.always_user_overridable:
            return None
        stored = await ctx.lookup(self.scope)
        if stored is None:
            return None
        if self.require_enabled and not stored.enabled:
            return None
        return ResolvedSetting(
            value=stored.value,
            source=self.scope.value,
            enabled=self.reports_enabled,
            step=self.name,
        )


@dataclass(frozen=True)
class SystemDefaultStep(ResolutionStep):
    name: str = "system_default"

    async def resolve(self, ctx: ResolutionContext) -> Optional[ResolvedSetting]:
        return ResolvedSetting(
            value=copy.deepcopy(ctx.system_defaults.get(ctx.category)),
            source="system",
            enabled=False,
            step=self.name,
        )


DEFAULT_CHAIN: tuple[ResolutionStep, ...] = (
    LayerStep("user_override", SettingScope.USER, only_overridable=True),
    LayerStep("project_override", SettingScope.PROJECT, require_enabled=True),
    LayerStep("user_preference", SettingScope.USER),
    LayerStep("global_default", SettingScope.GLOBAL, reports_enabled=False),
    SystemDefaultStep(),
)


class SettingsResolver:
    def __init__(
        self,
        store: SettingsStore,
        steps: Sequence[ResolutionStep] = DEFAULT_CHAIN,
        always_user_overridable: Iterable[str] = ALWAYS_USER_OVERRIDABLE,
        system_defaults: Mapping[str, Any] = SYSTEM_DEFAULTS,
    ):
        if not steps or not isinstance(steps[-1], SystemDefaultStep):
            raise ValueError("Resolution chain must end with a system default step")
        self.store = store
        self.steps = tuple(steps)
        self.always_user_overridable = frozenset(always_user_overridable)
        self.system_defaults = system_defaults

    async def resolve(self, category: str, user_id: Any = None, project_id: Any = None) -> ResolvedSetting:
        ctx = ResolutionContext(
            self.store,
            category,
            user_id,
            project_id,
            self.always_user_overridable,
            self.system_defaults,
        )
        for step in self.steps:
            resolved = await step.resolve(ctx)
            if resolved is not None:
                logger.debug(
                    "Setting resolved",
                    category=category,
                    source=resolved.source,
                    step=step.name,
                )
                return resolved
        # Unreachable: the chain always ends with SystemDefaultStep
        raise SettingsResolutionError(f"No resolution step produced a value for '{category}'")

    async def resolve_many(
        self,
        categories: Iterable[str],
        user_id: Any = None,
        project_id: Any = None,
    ) -> dict[str, ResolvedSetting]:
        return {
            category: await self.resolve(category, user_id, project_id)
            for category in categories
        }
