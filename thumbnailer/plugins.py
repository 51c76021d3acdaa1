"""Plugin host: loads resource plugins and runs their lifecycle."""

from __future__ import annotations

import logging
from importlib.metadata import entry_points

from thumbnailer.auth.delegate import Delegate, DelegateFactory
from thumbnailer.config import Configuration
from thumbnailer.models.context import RequestContext
from thumbnailer.pipeline.services import PipelineServices
from thumbnailer.resources.base import Plugin, Resource

logger = logging.getLogger(__name__)

ENTRY_POINT_GROUP = "thumbnailer.plugins"


class PluginHost:
    """Registry of resource plugins.

    Each registered resource class is instantiated once as a plugin (for its
    name, config keys and lifecycle hooks) and again for every request it
    handles.
    """

    def __init__(
        self,
        resources: list[type[Resource]] | None = None,
        services: PipelineServices | None = None,
        delegate_factory: DelegateFactory | None = None,
        config: Configuration | None = None,
    ) -> None:
        self.services = services
        self.delegate_factory = delegate_factory
        self._config = config
        self._resource_classes: list[type[Resource]] = []
        self._plugins: dict[str, Plugin] = {}
        self._started = False
        for resource_class in resources or []:
            self.register(resource_class)

    @property
    def config(self) -> Configuration:
        return self._config or Configuration.for_application()

    def register(self, resource_class: type[Resource]) -> None:
        """Register a resource class and initialize it if it is a plugin."""
        if resource_class in self._resource_classes:
            return
        self._resource_classes.append(resource_class)

        instance = resource_class()
        if isinstance(instance, Plugin):
            instance.initialize_plugin()
            self._plugins[instance.plugin_name] = instance
            logger.info(f"Loaded plugin {instance.plugin_name}")

    def discover(self) -> int:
        """Register resources advertised in the ``thumbnailer.plugins`` entry points.

        Returns:
            Number of newly registered resource classes
        """
        before = len(self._resource_classes)
        for ep in entry_points(group=ENTRY_POINT_GROUP):
            resource_class = ep.load()
            if not (isinstance(resource_class, type) and issubclass(resource_class, Resource)):
                raise TypeError(f"Entry point {ep.name} does not name a Resource subclass")
            self.register(resource_class)
        return len(self._resource_classes) - before

    @property
    def resource_classes(self) -> list[type[Resource]]:
        return list(self._resource_classes)

    @property
    def plugins(self) -> dict[str, Plugin]:
        return dict(self._plugins)

    def plugin_config_keys(self) -> dict[str, set[str]]:
        """Config keys recognized by each plugin, by plugin name."""
        return {name: plugin.plugin_config_keys() for name, plugin in self._plugins.items()}

    def unset_config_keys(self) -> set[str]:
        """Recognized plugin keys that have no value in the configuration."""
        recognized = set().union(*self.plugin_config_keys().values())
        return {key for key in recognized if not self.config.has(key)}

    def new_delegate(self, context: RequestContext) -> Delegate | None:
        if self.delegate_factory is None:
            return None
        return self.delegate_factory(context)

    def start(self) -> None:
        if self._started:
            return
        for plugin in self._plugins.values():
            plugin.on_application_start()
        self._started = True
        logger.info(f"Started {len(self._plugins)} plugin(s)")

    def stop(self) -> None:
        """Run the stop hooks, then close the pipeline services."""
        if not self._started:
            return
        for plugin in self._plugins.values():
            plugin.on_application_stop()
        if self.services is not None:
            self.services.close()
        self._started = False
        logger.info(f"Stopped {len(self._plugins)} plugin(s)")
