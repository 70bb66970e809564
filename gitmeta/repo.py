"""
Repository context

Ties the git collaborator, the metadata store and the configuration of
one work tree together. The repository root and the store location are
computed once, when the repository is opened, and handed to every
component through MetaContext instead of living in module globals.

    repo = MetaRepository.find(Path.cwd())
    result = build_tree(repo.ctx, repo.vcs, repo.store)
    repo.vcs.stage_all(repo.ctx.meta_rel)

Configuration layering, lowest to highest: built-in defaults,
.gitmeta/config.json, environment variables, explicit overrides from the
command line.
"""

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path

from .errors import GitMetaError, NotARepository
from .git import GitBackend, find_root
from .store import MetadataStore

logger = logging.getLogger(__name__)

META_DIR_NAME = ".gitmeta"
STORE_DIR_NAME = "store"
CONFIG_FILE_NAME = "config.json"

# Current config version — bump when the config schema changes
CONFIG_VERSION = "1.0"

# Known config keys for validation
KNOWN_CONFIG_KEYS = frozenset(
    {
        "version",
        "pager",
        "hook_command",
        "hooks",
        "auto_update",
    }
)

DEFAULT_HOOKS = {
    "pre-commit": "commit",
    "post-merge": "merge",
    "post-checkout": "merge",
}

DEFAULT_CONFIG = {
    "version": CONFIG_VERSION,
    "pager": "less -FRX",
    "hook_command": "git-meta",
    "hooks": DEFAULT_HOOKS,
    "auto_update": True,
}

_FALSY = {"", "0", "false", "no", "off"}


def _env_flag(value: str | None) -> bool:
    return value is not None and value.strip().lower() not in _FALSY


@dataclass(frozen=True)
class MetaContext:
    """Locations shared by every component for one invocation."""

    root: Path
    meta_rel: str = META_DIR_NAME

    @property
    def meta_dir(self) -> Path:
        return self.root / self.meta_rel

    @property
    def store_rel(self) -> str:
        return f"{self.meta_rel}/{STORE_DIR_NAME}"

    @property
    def store_dir(self) -> Path:
        return self.root / self.meta_rel / STORE_DIR_NAME

    @property
    def config_path(self) -> Path:
        return self.root / self.meta_rel / CONFIG_FILE_NAME


def load_config(ctx: MetaContext, environ: dict | None = None) -> dict:
    """
    Resolve the effective configuration.

    GITMETA_NO_UPDATE disables reconciliation before diffing;
    GITMETA_PAGER, then PAGER, choose the pager.
    """
    environ = os.environ if environ is None else environ
    config = dict(DEFAULT_CONFIG)
    config["hooks"] = dict(DEFAULT_HOOKS)

    file_config = _read_config_file(ctx.config_path)
    _validate_config(file_config)
    config.update(file_config)

    if "GITMETA_NO_UPDATE" in environ:
        config["auto_update"] = not _env_flag(environ["GITMETA_NO_UPDATE"])
    if "GITMETA_PAGER" in environ:
        config["pager"] = environ["GITMETA_PAGER"]
    elif "PAGER" in environ:
        config["pager"] = environ["PAGER"]
    return config


def _read_config_file(path: Path) -> dict:
    if not path.exists():
        return {}
    try:
        data = json.loads(path.read_text())
    except json.JSONDecodeError as e:
        raise GitMetaError(f"Invalid config file {path}: {e}") from None
    if not isinstance(data, dict):
        raise GitMetaError(f"Invalid config file {path}: expected a JSON object")
    return data


def _version_tuple(version: str) -> tuple:
    try:
        return tuple(int(part) for part in str(version).split("."))
    except ValueError:
        raise GitMetaError(f"Invalid config version: {version!r}") from None


def _validate_config(config: dict) -> None:
    """Validate config version and warn on unknown keys."""
    repo_version = config.get("version")
    if repo_version:
        # Refuse to run against config from a future version
        if _version_tuple(repo_version) > _version_tuple(CONFIG_VERSION):
            raise GitMetaError(
                f"Config version {repo_version} is newer than "
                f"this version of gitmeta ({CONFIG_VERSION}). "
                f"Please upgrade gitmeta."
            )

    hooks = config.get("hooks")
    if hooks is not None and not isinstance(hooks, dict):
        raise GitMetaError("Invalid config: 'hooks' must map hook names to commands")

    # Warn on unknown keys (don't reject — forward compatibility)
    unknown_keys = set(config.keys()) - KNOWN_CONFIG_KEYS
    if unknown_keys:
        logger.warning("Unknown config keys (ignored): %s", ", ".join(sorted(unknown_keys)))


class MetaRepository:
    """
    A git work tree with a gitmeta store.

    Stores all data in a .gitmeta directory at the work tree root; the
    per-path records live in .gitmeta/store/.
    """

    def __init__(self, root: Path, vcs: GitBackend | None = None, environ: dict | None = None):
        self.ctx = MetaContext(root=Path(root).resolve())
        self.vcs = vcs or GitBackend(self.ctx.root, exclude=self.ctx.meta_rel)
        self.store = MetadataStore(self.ctx.store_dir, self.ctx.store_rel, self.vcs)
        self.config = load_config(self.ctx, environ)

    @classmethod
    def find(cls, start_path: Path | None = None, environ: dict | None = None) -> "MetaRepository":
        """Open the repository whose work tree contains ``start_path``."""
        path = Path(start_path or Path.cwd()).resolve()
        if not path.exists():
            raise NotARepository(path)
        return cls(find_root(path), environ=environ)

    def hook_invocations(self) -> dict:
        """Map each hook name to the command line it should run."""
        command = self.config["hook_command"]
        return {hook: f"{command} {sub}" for hook, sub in sorted(self.config["hooks"].items())}
