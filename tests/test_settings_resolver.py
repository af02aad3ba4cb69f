"""
Tests for SettingsResolver
Layer precedence, verbatim values, the system floor and store failures
"""

from uuid import uuid4

import pytest

from pms_api.core.exceptions import SettingsResolutionError
from pms_api.core.setting_defaults import SYSTEM_DEFAULTS, SettingScope
from pms_api.core.settings_resolver import (
    DEFAULT_CHAIN,
    LayerStep,
    ResolvedSetting,
    SettingsResolver,
    SystemDefaultStep,
)


USER = uuid4()
PROJECT = uuid4()


@pytest.fixture
def resolver(settings_store):
    return SettingsResolver(settings_store)


class TestPrecedence:
    @pytest.mark.asyncio
    async def test_enabled_project_override_beats_global(self, resolver, settings_store):
        settings_store.put(SettingScope.GLOBAL, None, "dependencies", {"autoBlockTasks": False})
        settings_store.put(SettingScope.PROJECT, PROJECT, "dependencies", {"autoBlockTasks": True})

        resolved = await resolver.resolve("dependencies", USER, PROJECT)

        assert resolved == ResolvedSetting(value={"autoBlockTasks": True}, source="project", enabled=True)

    @pytest.mark.asyncio
    async def test_disabled_project_override_is_ignored(self, resolver, settings_store):
        settings_store.put(SettingScope.GLOBAL, None, "dependencies", {"autoBlockTasks": False})
        settings_store.put(
            SettingScope.PROJECT, PROJECT, "dependencies", {"autoBlockTasks": True}, enabled=False
        )

        resolved = await resolver.resolve("dependencies", USER, PROJECT)

        assert resolved == ResolvedSetting(value={"autoBlockTasks": False}, source="global", enabled=False)

    @pytest.mark.asyncio
    async def test_user_value_wins_for_always_overridable_categories(self, resolver, settings_store):
        settings_store.put(SettingScope.PROJECT, PROJECT, "notifications", {"grouping": "daily"})
        settings_store.put(SettingScope.USER, USER, "notifications", {"grouping": "realtime"})

        resolved = await resolver.resolve("notifications", USER, PROJECT)

        assert resolved.source == "user"
        assert resolved.value == {"grouping": "realtime"}
        assert resolved.step == "user_override"

    @pytest.mark.asyncio
    async def test_project_wins_over_user_for_other_categories(self, resolver, settings_store):
        settings_store.put(SettingScope.PROJECT, PROJECT, "taskView", {"defaultView": "board"})
        settings_store.put(SettingScope.USER, USER, "taskView", {"defaultView": "list"})

        resolved = await resolver.resolve("taskView", USER, PROJECT)

        assert resolved.source == "project"
        assert resolved.value == {"defaultView": "board"}

    @pytest.mark.asyncio
    async def test_user_preference_beats_global_without_project(self, resolver, settings_store):
        settings_store.put(SettingScope.GLOBAL, None, "taskView", {"defaultView": "calendar"})
        settings_store.put(SettingScope.USER, USER, "taskView", {"defaultView": "list"})

        resolved = await resolver.resolve("taskView", USER)

        assert resolved == ResolvedSetting(value={"defaultView": "list"}, source="user", enabled=True)
        assert resolved.step == "user_preference"

    @pytest.mark.asyncio
    async def test_project_override_ignored_without_project_id(self, resolver, settings_store):
        settings_store.put(SettingScope.PROJECT, PROJECT, "tasks", {"statuses": []})

        resolved = await resolver.resolve("tasks", USER)

        assert resolved.source == "system"

    @pytest.mark.asyncio
    async def test_value_is_returned_verbatim_without_merging(self, resolver, settings_store):
        settings_store.put(SettingScope.GLOBAL, None, "dependencies", {"autoBlockTasks": False})

        resolved = await resolver.resolve("dependencies")

        assert resolved.value == {"autoBlockTasks": False}
        assert "allowMultipleDependencies" not in resolved.value


class TestSystemFloor:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("category", sorted(SYSTEM_DEFAULTS))
    async def test_every_category_has_a_system_default(self, resolver, category):
        resolved = await resolver.resolve(category, USER, PROJECT)

        assert resolved.source == "system"
        assert resolved.enabled is False
        assert resolved.value is not None
        assert resolved.value == SYSTEM_DEFAULTS[category]

    @pytest.mark.asyncio
    async def test_auto_block_defaults_to_true(self, resolver):
        resolved = await resolver.resolve("dependencies")
        assert resolved.value["autoBlockTasks"] is True

    @pytest.mark.asyncio
    async def test_unknown_category_resolves_to_none(self, resolver):
        resolved = await resolver.resolve("no_such_category", USER)
        assert resolved == ResolvedSetting(value=None, source="system", enabled=False)

    @pytest.mark.asyncio
    async def test_system_default_is_a_copy(self, resolver):
        resolved = await resolver.resolve("dependencies")
        resolved.value["autoBlockTasks"] = False

        assert SYSTEM_DEFAULTS["dependencies"]["autoBlockTasks"] is True


class TestStoreFailures:
    @pytest.mark.asyncio
    async def test_store_failure_raises_instead_of_defaulting(self, resolver, settings_store):
        settings_store.error = ConnectionError("database unavailable")

        with pytest.raises(SettingsResolutionError) as exc_info:
            await resolver.resolve("dependencies", USER, PROJECT)

        assert exc_info.value.status_code == 503
        assert isinstance(exc_info.value.__cause__, ConnectionError)


class TestStoreAccess:
    @pytest.mark.asyncio
    async def test_each_layer_is_read_once(self, resolver, settings_store):
        await resolver.resolve("taskView", USER, PROJECT)

        scopes = [scope for scope, _, _ in settings_store.calls]
        assert scopes.count(SettingScope.USER) == 1
        assert scopes.count(SettingScope.PROJECT) == 1
        assert scopes.count(SettingScope.GLOBAL) == 1

    @pytest.mark.asyncio
    async def test_user_layers_skipped_without_user(self, resolver, settings_store):
        await resolver.resolve("general", project_id=PROJECT)

        assert all(scope != SettingScope.USER for scope, _, _ in settings_store.calls)

    @pytest.mark.asyncio
    async def test_overridable_category_stops_after_user_hit(self, resolver, settings_store):
        settings_store.put(SettingScope.USER, USER, "preferences", {"timezone": "UTC"})

        await resolver.resolve("preferences", USER, PROJECT)

        assert settings_store.calls == [(SettingScope.USER, USER, "preferences")]


class TestChainConfiguration:
    def test_chain_must_end_with_system_default(self, settings_store):
        with pytest.raises(ValueError):
            SettingsResolver(settings_store, steps=DEFAULT_CHAIN[:-1])

    @pytest.mark.asyncio
    async def test_overridable_set_is_configurable(self, settings_store):
        resolver = SettingsResolver(settings_store, always_user_overridable=["taskView"])
        settings_store.put(SettingScope.PROJECT, PROJECT, "taskView", {"defaultView": "board"})
        settings_store.put(SettingScope.USER, USER, "taskView", {"defaultView": "list"})

        resolved = await resolver.resolve("taskView", USER, PROJECT)

        assert resolved.source == "user"

    @pytest.mark.asyncio
    async def test_custom_chain(self, settings_store):
        resolver = SettingsResolver(
            settings_store,
            steps=(LayerStep("global_default", SettingScope.GLOBAL, reports_enabled=False), SystemDefaultStep()),
        )
        settings_store.put(SettingScope.USER, USER, "taskView", {"defaultView": "list"})

        resolved = await resolver.resolve("taskView", USER, PROJECT)

        assert resolved.source == "system"


class TestResolveMany:
    @pytest.mark.asyncio
    async def test_resolves_each_category(self, resolver, settings_store):
        settings_store.put(SettingScope.USER, USER, "workflow", {"defaultLandingPage": "tasks"})

        resolved = await resolver.resolve_many(["workflow", "todayTasks"], USER)

        assert resolved["workflow"].source == "user"
        assert resolved["todayTasks"].source == "system"
        assert resolved["workflow"].to_dict() == {
            "value": {"defaultLandingPage": "tasks"},
            "source": "user",
            "enabled": True,
        }
