"""Tests for result extensions."""

from abc import abstractmethod

import pytest

from riftcall.exceptions import SettingsError
from riftcall.services.extensions import (
    Extension,
    ExtensionRegistry,
    get_extension_registry,
    register_extension,
    reset_extension_registry,
)


class ChampionLookup(Extension):
    capabilities = frozenset({"by_id", "names"})

    def by_id(self, champion_id):
        return next(c for c in self.data if c["id"] == champion_id)

    def names(self):
        return [c["name"] for c in self.data]

    def undeclared(self):
        return "hidden"


class AbstractLookup(Extension):
    @abstractmethod
    def by_id(self, champion_id):
        pass


class PromisesTooMuch(Extension):
    capabilities = frozenset({"missing"})


DATA = [{"id": 1, "name": "Annie"}, {"id": 2, "name": "Olaf"}]


class TestExtension:

    def test_dispatch_declared_capability(self):
        extension = ChampionLookup(DATA)
        assert extension.dispatch("by_id", 2)["name"] == "Olaf"
        assert extension.dispatch("names") == ["Annie", "Olaf"]

    def test_dispatch_refuses_undeclared_method(self):
        with pytest.raises(AttributeError, match="undeclared"):
            ChampionLookup(DATA).dispatch("undeclared")


class TestExtensionRegistry:

    def test_register_and_extend(self):
        registry = ExtensionRegistry({"ChampionList": ChampionLookup})
        assert "ChampionList" in registry
        assert len(registry) == 1

        extension = registry.extend("ChampionList", DATA, pipeline="api")
        assert isinstance(extension, ChampionLookup)
        assert extension.pipeline == "api"

    def test_extend_unknown_type(self):
        assert ExtensionRegistry().extend("Nothing", DATA) is None

    def test_unregister(self):
        registry = ExtensionRegistry({"ChampionList": ChampionLookup})
        registry.unregister("ChampionList")
        assert registry.get("ChampionList") is None

    @pytest.mark.parametrize(
        ("extension_class", "message"),
        [
            ("ChampionLookup", "is not valid."),
            (dict, "does not implement the Extension interface"),
            (AbstractLookup, "is not instantiable"),
            (PromisesTooMuch, "does not implement"),
        ],
    )
    def test_rejects_invalid_extensions(self, extension_class, message):
        with pytest.raises(SettingsError, match=message):
            ExtensionRegistry({"ChampionList": extension_class})

    def test_rejects_empty_object_type(self):
        with pytest.raises(SettingsError):
            ExtensionRegistry().register("", ChampionLookup)


class TestGlobalRegistry:

    def test_register_extension(self):
        register_extension("ChampionList", ChampionLookup)
        assert get_extension_registry().get("ChampionList") is ChampionLookup

    def test_reset(self):
        register_extension("ChampionList", ChampionLookup)
        reset_extension_registry()
        assert get_extension_registry().get("ChampionList") is None
