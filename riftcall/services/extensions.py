"""Result extensions.

An extension adds behaviour to the decoded result of a given object type
(for example a lookup helper over a list payload). Each extension declares
the capabilities it offers; registration checks that every declared
capability is implemented, and dispatch only reaches declared ones.
"""

from abc import ABC
import inspect
from typing import Any, ClassVar, Dict, FrozenSet, Optional, Type

from riftcall.core.logging import get_logger
from riftcall.exceptions import SettingsError

logger = get_logger(__name__)


class Extension(ABC):
    """Base class for result extensions.

    Subclasses list their public capability methods in ``capabilities``.

    Example:
        >>> class ChampionLookup(Extension):
        ...     capabilities = frozenset({"by_id"})
        ...     def by_id(self, champion_id):
        ...         return next(c for c in self.data if c["id"] == champion_id)
    """

    capabilities: ClassVar[FrozenSet[str]] = frozenset()

    def __init__(self, data: Any, pipeline: Any = None):
        self.data = data
        self.pipeline = pipeline

    def dispatch(self, capability: str, *args, **kwargs) -> Any:
        """Invoke a declared capability.

        Raises:
            AttributeError: If the capability was not declared.
        """
        if capability not in self.capabilities:
            raise AttributeError(
                f"Extension '{type(self).__name__}' has no capability '{capability}'"
            )
        return getattr(self, capability)(*args, **kwargs)


def validate_extension(extension_class: Any) -> Type[Extension]:
    """Check an extension class before it is registered.

    Raises:
        SettingsError: If the class is not a usable Extension.
    """
    if not inspect.isclass(extension_class):
        raise SettingsError(
            f"Value of settings parameter 'extensions' ({extension_class!r}) is not valid."
        )
    name = extension_class.__name__
    if not issubclass(extension_class, Extension):
        raise SettingsError(f"Extension '{name}' does not implement the Extension interface.")
    if inspect.isabstract(extension_class):
        raise SettingsError(f"Extension '{name}' is not instantiable.")
    for capability in extension_class.capabilities:
        if capability.startswith("_") or not callable(getattr(extension_class, capability, None)):
            raise SettingsError(
                f"Extension '{name}' declares capability '{capability}' it does not implement."
            )
    return extension_class


class ExtensionRegistry:
    """Maps result object types to extension classes."""

    def __init__(self, extensions: Optional[Dict[str, Type[Extension]]] = None):
        self._extensions: Dict[str, Type[Extension]] = {}
        for object_type, extension_class in (extensions or {}).items():
            self.register(object_type, extension_class)

    def register(self, object_type: str, extension_class: Type[Extension]) -> None:
        if not object_type:
            raise SettingsError("Extension object type is not valid.")
        self._extensions[object_type] = validate_extension(extension_class)
        logger.debug(f"Registered extension {extension_class.__name__} for {object_type}")

    def unregister(self, object_type: str) -> None:
        self._extensions.pop(object_type, None)

    def get(self, object_type: str) -> Optional[Type[Extension]]:
        return self._extensions.get(object_type)

    def extend(self, object_type: str, data: Any, pipeline: Any = None) -> Optional[Extension]:
        """Instantiate the extension registered for an object type, if any."""
        extension_class = self._extensions.get(object_type)
        if extension_class is None:
            return None
        return extension_class(data, pipeline)

    def __contains__(self, object_type: str) -> bool:
        return object_type in self._extensions

    def __len__(self) -> int:
        return len(self._extensions)


# Global registry instance
_extension_registry: Optional[ExtensionRegistry] = None


def get_extension_registry() -> ExtensionRegistry:
    global _extension_registry
    if _extension_registry is None:
        _extension_registry = ExtensionRegistry()
    return _extension_registry


def register_extension(object_type: str, extension_class: Type[Extension]) -> None:
    """Register an extension on the global registry."""
    get_extension_registry().register(object_type, extension_class)


def reset_extension_registry() -> None:
    """Reset the global registry (useful for testing)."""
    global _extension_registry
    _extension_registry = None
