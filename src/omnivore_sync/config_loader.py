"""
Find, read and merge the omnivore-sync YAML config files.

Files are looked up in this order, first match winning:

1. ``$OMNIVORE_SYNC_CONFIG`` (explicit path)
2. ``./.omnivore_sync/config.yml``, then ``config.yaml``
3. ``~/.config/omnivore_sync/config.yml``

A top-level section (``omnivore``, ``sync``, ``logging``) in a
higher-precedence file replaces that whole section from lower ones.  Any
value may be ``!include other.yml``, resolved next to the including
file, and strings may reference ``${VAR}`` or ``${VAR:-default}``.

``ConfigWatcher`` polls the same files, includes too, and is the hook
that turns a settings edit into a reload.

Usage:
    from omnivore_sync.config_loader import load_hierarchical_config

    raw = load_hierarchical_config()
"""

import logging
import os
import re
from collections.abc import Callable
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "OMNIVORE_SYNC_CONFIG"
PROJECT_DIR = ".omnivore_sync"

_ENV_REF = re.compile(r"\$\{(?P<name>[^}:]+?)(?::-(?P<default>.*?))?\}")


# ---------------------------------------------------------------------------
# Env references
# ---------------------------------------------------------------------------


def interpolate_env_vars(value: str) -> str:
    """Expand ``${VAR}`` and ``${VAR:-default}`` references in *value*.

    An unset or empty variable expands to its default, or to ``""``
    without one.  A ``${`` with no closing brace is kept as written.
    """
    return _ENV_REF.sub(
        lambda m: os.environ.get(m["name"]) or m["default"] or "", value
    )


def _expand_tree(node: Any) -> Any:
    if isinstance(node, str):
        return interpolate_env_vars(node)
    if isinstance(node, dict):
        return {key: _expand_tree(val) for key, val in node.items()}
    if isinstance(node, list):
        return [_expand_tree(item) for item in node]
    return node


# ---------------------------------------------------------------------------
# YAML with !include
# ---------------------------------------------------------------------------


class _IncludeLoader(yaml.SafeLoader):
    """``SafeLoader`` bound to one file of an include chain.

    The global ``yaml.SafeLoader`` is left without ``!include``.
    """

    def __init__(self, stream, chain: tuple[Path, ...], seen: set[Path] | None):
        super().__init__(stream)
        self.chain = chain
        self.seen = seen


def _construct_include(loader: _IncludeLoader, node: yaml.ScalarNode) -> Any:
    current = loader.chain[-1]
    target = Path(loader.construct_scalar(node)).expanduser()
    if not target.is_absolute():
        target = current.parent / target
    target = target.resolve()

    if target in loader.chain:
        cycle = " -> ".join(str(p) for p in (*loader.chain, target))
        raise ValueError(f"Circular include detected: {cycle}")
    if not target.is_file():
        raise FileNotFoundError(
            f"Include file not found: {target} (referenced from {current})"
        )
    return read_yaml(target, chain=loader.chain, seen=loader.seen)


_IncludeLoader.add_constructor("!include", _construct_include)


def read_yaml(
    path: Path,
    chain: tuple[Path, ...] = (),
    seen: set[Path] | None = None,
) -> Any:
    """Parse one config file, following its ``!include`` directives.

    Args:
        path: File to read.
        chain: Files currently being included (cycle detection).
        seen: If given, every file read (includes too) is added to it.

    Raises:
        ValueError: On a circular include.
        FileNotFoundError: If an included file does not exist.
        yaml.YAMLError: On a syntax error.
    """
    path = path.resolve()
    if seen is not None:
        seen.add(path)
    with path.open(encoding="utf-8") as fh:
        loader = _IncludeLoader(fh, (*chain, path), seen)
        try:
            return loader.get_single_data()
        finally:
            loader.dispose()


# ---------------------------------------------------------------------------
# Discovery and bootstrapping
# ---------------------------------------------------------------------------


def discover_config_files() -> list[Path]:
    """Return the config files that exist, highest precedence first."""
    cwd = Path.cwd()
    candidates = [
        cwd / PROJECT_DIR / "config.yml",
        cwd / PROJECT_DIR / "config.yaml",
        Path.home() / ".config" / "omnivore_sync" / "config.yml",
    ]
    explicit = os.environ.get(CONFIG_ENV_VAR)
    if explicit:
        candidates.insert(0, Path(explicit).expanduser().resolve())
    return [path for path in candidates if path.is_file()]


_STARTER_CONFIG = """\
# omnivore-sync configuration
#
# The API key can also be set via the OMNIVORE_API_KEY environment variable.
#
# omnivore:
#   api_key: ${OMNIVORE_API_KEY}
#   page_size: 50
#   timeout: 30
#
# sync:
#   sync_type: all               # all | articles | highlights
#   sync_interval: 0             # minutes, 0 for manual sync only
#   target_notebook: Omnivore
#   user_timezone: local         # or e.g. America/New_York
#   highlight_template: default  # default | minimal
#   highlight_sync_period: 14    # days to look back for new highlights
#   highlight_title_prefix: Omnivore Highlights
#   notes_dir: ~/OmnivoreNotes
#   state_dir: .omnivore_sync
#
# logging:
#   level: warn                  # error | warn | debug
#   file: null
"""


def resolve_config_path() -> Path:
    """The config file in use, or the project default if there is none."""
    existing = discover_config_files()
    if existing:
        return existing[0]
    return Path.cwd() / PROJECT_DIR / "config.yml"


def ensure_config(target: Path | None = None) -> Path:
    """Return the config file in use, writing a starter file if none exists.

    Args:
        target: Where to write the starter file (default:
            ``resolve_config_path()``).
    """
    existing = discover_config_files()
    if existing:
        logger.debug("Config file already exists: %s", existing[0])
        return existing[0]

    path = target or resolve_config_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(_STARTER_CONFIG, encoding="utf-8")
    logger.info("Created starter config: %s", path)
    return path


# ---------------------------------------------------------------------------
# Merge
# ---------------------------------------------------------------------------


def load_hierarchical_config() -> dict[str, Any]:
    """Merge every discovered config file into one raw dict.

    Files are applied lowest precedence first, each replacing whole
    top-level sections.  Env references are expanded after the merge.
    No config files at all gives ``{}``.
    """
    merged: dict[str, Any] = {}
    for path in reversed(discover_config_files()):
        logger.debug("Loading config: %s", path)
        data = read_yaml(path)
        if isinstance(data, dict):
            merged.update(data)
        elif data is not None:
            logger.warning(
                "Ignoring config file %s: top level is a %s, not a mapping",
                path,
                type(data).__name__,
            )
    return _expand_tree(merged)


# ---------------------------------------------------------------------------
# Change notification
# ---------------------------------------------------------------------------


class ConfigWatcher:
    """Detect edits to the config files by polling modification times.

    Included files are watched along with the files that include them.
    ``check()`` is meant to be called periodically (the scheduler runs
    it as a background job); subscribers fire once per detected change,
    including files appearing or disappearing.
    """

    def __init__(self) -> None:
        self._callbacks: list[Callable[[], None]] = []
        self._snapshot = self._take_snapshot()

    def subscribe(self, callback: Callable[[], None]) -> None:
        """Register *callback* to be called after a config change."""
        self._callbacks.append(callback)

    def check(self) -> bool:
        """Compare the files against the last snapshot.

        Returns:
            ``True`` if a change was detected (callbacks were invoked).
        """
        current = self._take_snapshot()
        if current == self._snapshot:
            return False

        self._snapshot = current
        logger.info("Configuration change detected")
        for callback in self._callbacks:
            try:
                callback()
            except Exception:
                logger.exception("Config change callback failed")
        return True

    @staticmethod
    def _watched_files() -> set[Path]:
        files: set[Path] = set()
        for path in discover_config_files():
            files.add(path.resolve())
            try:
                read_yaml(path, seen=files)
            except (OSError, ValueError, yaml.YAMLError) as exc:
                # The reload reports the error; keep watching what exists.
                logger.debug("Cannot follow includes of %s: %s", path, exc)
        return files

    @classmethod
    def _take_snapshot(cls) -> dict[Path, float]:
        snapshot: dict[Path, float] = {}
        for path in cls._watched_files():
            try:
                snapshot[path] = path.stat().st_mtime
            except OSError:
                continue
        return snapshot
