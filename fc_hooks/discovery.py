"""
Hook discovery.

Hooks are found in two ways:

1. Filesystem discovery: discover() walks a hook tree and selects the
   modules named after the requested phase ("pre.py") that live inside a
   subdirectory of the tree. Modules directly at the root are never
   selected; the root is reserved for helpers shared between hooks.
2. Explicit registration: HookRegistry maps a phase to an ordered list of
   factories, populated with a decorator, from configured module
   identifiers, or from a hook tree.

The discovered set is resolved on every call and never cached, so hooks
added to the tree are picked up by the next run.
"""

import importlib
import importlib.util
import inspect
import logging
import os
import sys
from collections.abc import Iterable
from pathlib import Path, PurePosixPath

from fc_common.errors import DiscoveryError

from .base import Hook, HookFactory

logger = logging.getLogger(__name__)

MODULE_EXTENSION = "py"


def _is_skipped(name: str) -> bool:
    return name.startswith(".") or name == "__pycache__"


def _module_name(relative: PurePosixPath) -> str:
    parts = [p.replace("-", "_").replace(".", "_") for p in relative.with_suffix("").parts]
    return "fc_hook_" + "_".join(parts)


def find_hook_files(root_path: str | os.PathLike, phase: str) -> list[PurePosixPath]:
    """
    Find the hook modules for a phase without importing them.

    Args:
        root_path: Root of the hook tree
        phase: Phase name (compared case-insensitively)

    Returns:
        Root-relative paths of the selected modules, sorted lexicographically

    Raises:
        DiscoveryError: If the root does not exist or cannot be read
    """
    root = Path(root_path)
    if not root.exists():
        raise DiscoveryError(f"Hook directory does not exist: {root}")
    if not root.is_dir():
        raise DiscoveryError(f"Hook path is not a directory: {root}")

    try:
        os.listdir(root)
    except OSError as e:
        raise DiscoveryError(f"Hook directory is not readable: {root}: {e}") from e

    def on_error(error: OSError) -> None:
        logger.warning(f"Skipping unreadable hook directory {error.filename}: {error}")

    prefix = f"{phase.lower()}.{MODULE_EXTENSION}"
    selected: list[PurePosixPath] = []

    for dirpath, dirnames, filenames in os.walk(root, onerror=on_error):
        dirnames[:] = [d for d in dirnames if not _is_skipped(d)]
        relative_dir = PurePosixPath(Path(dirpath).relative_to(root).as_posix())

        # Modules at the root of the tree are never hooks
        if relative_dir == PurePosixPath("."):
            continue

        for filename in filenames:
            if _is_skipped(filename) or not filename.endswith(f".{MODULE_EXTENSION}"):
                continue
            if filename.startswith(prefix):
                selected.append(relative_dir / filename)

    return sorted(selected, key=lambda p: p.as_posix())


def load_hook(root_path: str | os.PathLike, relative: PurePosixPath) -> type[Hook]:
    """
    Import a hook module and return the Hook subclass it defines.

    The hook's name defaults to its directory within the tree.

    Raises:
        DiscoveryError: If the module cannot be imported or does not define
                        exactly one concrete Hook subclass
    """
    path = Path(root_path) / Path(*relative.parts)
    module_name = _module_name(relative)

    spec = importlib.util.spec_from_file_location(module_name, path)
    if not spec or not spec.loader:
        raise DiscoveryError(f"Cannot load hook module: {path}")

    module = importlib.util.module_from_spec(spec)
    sys.modules[module_name] = module
    try:
        spec.loader.exec_module(module)
    except Exception as e:
        sys.modules.pop(module_name, None)
        raise DiscoveryError(f"Failed to import hook module {relative}: {e}") from e

    hook_class = _find_hook_class(module, str(relative))
    if "name" not in hook_class.__dict__:
        hook_class.name = relative.parent.as_posix()
    return hook_class


def _find_hook_class(module, label: str) -> type[Hook]:
    candidates = [
        obj
        for obj in vars(module).values()
        if inspect.isclass(obj)
        and issubclass(obj, Hook)
        and obj is not Hook
        and not inspect.isabstract(obj)
        and obj.__module__ == module.__name__
    ]
    if not candidates:
        raise DiscoveryError(f"Hook module {label} does not define a Hook subclass")
    if len(candidates) > 1:
        names = ", ".join(sorted(c.__name__ for c in candidates))
        raise DiscoveryError(f"Hook module {label} defines several hooks: {names}")
    return candidates[0]


def discover(root_path: str | os.PathLike, phase: str) -> list[type[Hook]]:
    """
    Discover the hooks of a phase in a hook tree.

    Args:
        root_path: Root of the hook tree
        phase: Phase name, e.g. "pre" (compared case-insensitively)

    Returns:
        Hook classes, ordered by their path within the tree

    Raises:
        DiscoveryError: If the root is missing or unreadable, or a selected
                        module is invalid
    """
    files = find_hook_files(root_path, phase)
    hooks = [load_hook(root_path, relative) for relative in files]
    logger.debug(f"Discovered {len(hooks)} {phase.lower()} hooks in {root_path}")
    return hooks


def import_hook(identifier: str) -> type[Hook]:
    """
    Import a hook from a "package.module:ClassName" identifier.

    When the class name is omitted the module must define exactly one Hook
    subclass.

    Raises:
        DiscoveryError: If the module or class cannot be found
    """
    module_name, _, attribute = identifier.partition(":")
    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise DiscoveryError(f"Cannot import hook module {module_name}: {e}") from e

    if not attribute:
        return _find_hook_class(module, module_name)

    hook_class = getattr(module, attribute, None)
    if not (inspect.isclass(hook_class) and issubclass(hook_class, Hook)):
        raise DiscoveryError(f"{identifier} is not a Hook subclass")
    return hook_class


class HookRegistry:
    """
    Explicit mapping of phase name to an ordered list of hook factories.

    Example:
        registry = HookRegistry()

        @registry.register("pre")
        class License(Hook):
            async def run(self):
                return PartialResult()
    """

    def __init__(self):
        self._hooks: dict[str, list[HookFactory]] = {}

    def register(self, phase: str, factory: HookFactory | None = None):
        """
        Register a factory for a phase.

        Can be called directly or used as a class decorator.
        """
        if factory is None:

            def decorator(f: HookFactory) -> HookFactory:
                self.register(phase, f)
                return f

            return decorator

        self._hooks.setdefault(phase.lower(), []).append(factory)
        return factory

    def load_modules(self, phase: str, identifiers: Iterable[str]) -> int:
        """
        Register hooks from configured "package.module:ClassName" identifiers.

        Returns:
            Number of hooks registered

        Raises:
            DiscoveryError: If an identifier cannot be resolved
        """
        count = 0
        for identifier in identifiers:
            self.register(phase, import_hook(identifier))
            count += 1
        return count

    def load_directory(self, root_path: str | os.PathLike, phase: str) -> int:
        """
        Register every hook of a phase found in a hook tree.

        Returns:
            Number of hooks registered
        """
        hooks = discover(root_path, phase)
        for hook in hooks:
            self.register(phase, hook)
        return len(hooks)

    def hooks_for(self, phase: str) -> tuple[HookFactory, ...]:
        return tuple(self._hooks.get(phase.lower(), ()))

    def phases(self) -> list[str]:
        return sorted(self._hooks)

    def clear(self) -> None:
        self._hooks.clear()

    def __len__(self) -> int:
        return sum(len(hooks) for hooks in self._hooks.values())
