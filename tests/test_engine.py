"""Tests for the grants engine facade, locking and configuration."""

import logging
from concurrent.futures import ThreadPoolExecutor
from types import MappingProxyType

import pytest

from accessgrants import AccessControlError, ErrorKind, GrantsEngine
from accessgrants.authz import AccessInfo, Action, Permission, get_grants_engine
from accessgrants.config import GrantsSettings


@pytest.fixture
def settings():
    """Settings independent of the environment."""
    return GrantsSettings(memoize_hierarchy=True, lock_on_load=False, log_decisions=False)


@pytest.fixture
def engine(settings):
    """Create an engine with a few grants."""
    engine = GrantsEngine(settings=settings)
    engine.grant({"role": "user", "resource": "video", "action": "read:any",
                  "attributes": ["*", "!secret"]})
    engine.grant({"role": "user", "resource": "video", "action": "create:own"})
    engine.grant({"role": "admin", "resource": ["video", "photo"], "action": "delete:any"})
    engine.extend_role("admin", "user")
    return engine


class TestBuild:
    """Test building the grants table through the engine."""

    def test_get_grants(self, engine):
        assert engine.get_grants() == {
            "user": {"video": {"read:any": ["*", "!secret"], "create:own": ["*"]}},
            "admin": {
                "video": {"delete:any": ["*"]},
                "photo": {"delete:any": ["*"]},
                "$extend": ["user"],
            },
        }

    def test_get_grants_is_a_copy(self, engine):
        engine.get_grants()["user"]["video"]["read:any"].append("secret")
        assert engine.get_grants()["user"]["video"]["read:any"] == ["*", "!secret"]

    def test_deny_overrides_grant(self, engine):
        engine.deny({"role": "user", "resource": "video", "action": "read:any"})
        permission = engine.permission({"role": "user", "resource": "video", "action": "read"})
        assert permission.granted is False
        assert permission.attributes == []

    def test_grant_from_model(self, engine):
        engine.grant(AccessInfo(role=["guest"], resource=["video"], action=Action.READ))
        assert engine.get_grants()["guest"] == {"video": {"read:any": ["*"]}}

    def test_set_grants(self, settings):
        engine = GrantsEngine({"user": {"video": {"read:any": ["*"]}}}, settings=settings)
        assert engine.get_roles() == ["user"]

    def test_reset(self, engine):
        engine.reset()
        assert engine.get_roles() == []

    def test_pre_create_roles(self, engine):
        engine.pre_create_roles("guest")
        assert engine.has_role("guest")
        assert engine.get_grants()["guest"] == {}


class TestIntrospection:
    """Test read-only helpers."""

    def test_roles_and_resources(self, engine):
        assert engine.get_roles() == ["user", "admin"]
        assert engine.get_resources() == ["video", "photo"]

    def test_has_role(self, engine):
        assert engine.has_role(["user", "admin"])
        assert not engine.has_role(["user", "ghost"])
        assert not engine.has_role([])

    def test_has_resource(self, engine):
        assert engine.has_resource("photo")
        assert not engine.has_resource("song")

    def test_inherited_roles(self, engine):
        assert engine.get_inherited_roles_of("admin") == ["user"]
        assert engine.get_inherited_roles_of("user") == []

    def test_remove_roles(self, engine):
        engine.remove_roles("user")
        assert engine.get_roles() == ["admin"]
        assert "$extend" not in engine.get_grants()["admin"]

    def test_remove_resources(self, engine):
        engine.remove_resources("photo")
        assert engine.get_resources() == ["video"]


class TestPermission:
    """Test permission queries."""

    def test_inherited_permission(self, engine):
        permission = engine.permission(
            {"role": "admin", "resource": "video", "action": "read", "possession": "own"}
        )
        assert isinstance(permission, Permission)
        assert permission.granted is True
        assert permission.roles == ["admin"]
        assert permission.resource == "video"
        assert permission.action == Action.READ

    def test_permission_filter(self, engine):
        permission = engine.permission({"role": "user", "resource": "video", "action": "read"})
        data = [{"id": 1, "secret": "x"}, {"id": 2, "secret": "y"}]
        assert permission.filter(data) == [{"id": 1}, {"id": 2}]

    def test_not_granted(self, engine):
        permission = engine.permission({"role": "user", "resource": "photo", "action": "delete"})
        assert permission.granted is False
        assert permission.filter({"id": 1}) == {}

    def test_static_filter(self):
        assert GrantsEngine.filter({"id": 1, "secret": "x"}, ["*", "!secret"]) == {"id": 1}

    def test_decision_logged(self, engine, caplog):
        """Decisions are logged at INFO when log_decisions is enabled."""
        engine.settings = GrantsSettings(log_decisions=True)
        with caplog.at_level(logging.INFO, logger="accessgrants.authz.engine"):
            engine.permission({"role": "user", "resource": "video", "action": "read"})
        assert "Access GRANTED" in caplog.text


class TestLock:
    """Test locking the grants table."""

    def test_lock_empty_engine(self, settings):
        engine = GrantsEngine(settings=settings)
        with pytest.raises(AccessControlError) as exc:
            engine.lock()
        assert exc.value.kind == ErrorKind.EMPTY_OR_INVALID_GRANTS

    def test_lock_blocks_mutation(self, engine):
        engine.lock()
        assert engine.is_locked
        mutations = [
            lambda: engine.grant({"role": "user", "resource": "video", "action": "update"}),
            lambda: engine.deny({"role": "user", "resource": "video", "action": "read"}),
            lambda: engine.extend_role("user", "admin"),
            lambda: engine.pre_create_roles("guest"),
            lambda: engine.remove_roles("user"),
            lambda: engine.remove_resources("video"),
            lambda: engine.set_grants({"x": {}}),
            engine.reset,
        ]
        for mutate in mutations:
            with pytest.raises(AccessControlError) as exc:
                mutate()
            assert exc.value.kind == ErrorKind.LOCKED

    def test_lock_is_idempotent(self, engine):
        engine.lock()
        engine.lock()
        assert engine.is_locked

    def test_locked_table_is_frozen(self, engine):
        """Nested mappings become read-only and lists become tuples."""
        engine.lock()
        grants = engine.table.grants
        assert isinstance(grants, MappingProxyType)
        assert grants["user"]["video"]["read:any"] == ("*", "!secret")
        with pytest.raises(TypeError):
            grants["user"]["video"]["read:any"] = ["*"]

    def test_queries_after_lock(self, engine):
        engine.lock()
        permission = engine.permission({"role": "admin", "resource": "video", "action": "read"})
        assert permission.attributes == ["*", "!secret"]

    def test_concurrent_reads_after_lock(self, engine):
        engine.lock()
        query = {"role": ["admin"], "resource": "video", "action": "read:own"}
        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(pool.map(lambda _: engine.permission(query).granted, range(64)))
        assert all(results)

    def test_lock_on_load(self):
        engine = GrantsEngine(
            {"user": {"video": {"read:any": ["*"]}}},
            settings=GrantsSettings(lock_on_load=True),
        )
        assert engine.is_locked


class TestConfig:
    """Test settings and the engine singleton."""

    def test_settings_from_env(self, monkeypatch):
        monkeypatch.setenv("ACCESSGRANTS_LOCK_ON_LOAD", "true")
        monkeypatch.setenv("ACCESSGRANTS_MEMOIZE_HIERARCHY", "false")
        settings = GrantsSettings()
        assert settings.lock_on_load is True
        assert settings.memoize_hierarchy is False

    def test_engine_singleton(self):
        assert get_grants_engine() is get_grants_engine()
