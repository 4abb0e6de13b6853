"""
Plugin loader for dynamically loading controller modules.
"""

import importlib.util
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from .models import ActionHandler, Controller

logger = logging.getLogger(__name__)

BOT_ROOT = Path(__file__).parent.parent
CONTROLLERS_DIR = BOT_ROOT / "controllers"


@dataclass
class Plugin:
    """A loaded controller plugin."""
    name: str
    controller: Controller
    action_handlers: dict[str, ActionHandler] = field(default_factory=dict)


class PluginLoader:
    """
    Discovers and loads Controller implementations from subdirectories.

    Each plugin folder must contain:
    - controller.py with a get_controller() factory
    - optionally get_action_handlers() returning {callback_id: handler}
    """

    def __init__(self, root_dir: Path | None = None, allowed: list[str] | None = None):
        self.root_dir = root_dir if root_dir is not None else CONTROLLERS_DIR
        self.allowed = allowed
        self.excluded_dirs = {'__pycache__', '.git', '.venv', '.tmp'}

    def discover(self) -> list[str]:
        """
        Find all directories that contain a controller module.

        Returns:
            Plugin names, in the order their controllers should be registered
        """
        found = []

        for item in sorted(self.root_dir.iterdir()):
            if not item.is_dir():
                continue
            if item.name in self.excluded_dirs or item.name.startswith('.'):
                continue
            if self.allowed is not None and item.name not in self.allowed:
                continue

            if (item / "controller.py").exists():
                found.append(item.name)
                logger.debug(f"Discovered plugin: {item.name}")

        if self.allowed is not None:
            found.sort(key=self.allowed.index)
        return found

    def load(self, name: str) -> Optional[Plugin]:
        """
        Load a single plugin by directory name.

        Returns:
            Plugin or None if loading fails
        """
        controller_path = self.root_dir / name / "controller.py"

        if not controller_path.exists():
            logger.error(f"Controller file not found: {controller_path}")
            return None

        try:
            spec = importlib.util.spec_from_file_location(
                f"controllers.{name}",
                controller_path
            )
            module = importlib.util.module_from_spec(spec)
            spec.loader.exec_module(module)

            if not hasattr(module, 'get_controller'):
                logger.error(f"No get_controller() in {name}/controller.py")
                return None

            controller = module.get_controller()
            if not isinstance(controller, Controller):
                logger.error(
                    f"get_controller() in {name} did not return a Controller"
                )
                return None

            handlers = {}
            if hasattr(module, 'get_action_handlers'):
                handlers = dict(module.get_action_handlers())

            return Plugin(name=name, controller=controller, action_handlers=handlers)

        except Exception as e:
            logger.exception(f"Failed to load plugin '{name}': {e}")

        return None

    def load_all(self) -> list[Plugin]:
        """Load all discovered plugins, in registration order."""
        plugins = []

        for name in self.discover():
            plugin = self.load(name)
            if plugin:
                plugins.append(plugin)
                logger.info(
                    f"Loaded plugin: {name} "
                    f"({len(plugin.action_handlers)} action handlers)"
                )

        return plugins
