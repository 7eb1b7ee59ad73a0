"""
Configuration: project-level YAML with environment overrides.

Loading priority (first file found wins):
  1. Project dir .designcrew.yml
  2. Git root .designcrew.yml
  3. Global ~/.designcrew/config.yml

.env files are loaded from ~/.designcrew/.env and the project dir without
overriding variables that are already set.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Set

import yaml
from dotenv import load_dotenv

from .logger import get_logger

_log = get_logger(__name__)

CONFIG_DIR = Path.home() / ".designcrew"
CONFIG_FILE = CONFIG_DIR / "config.yml"
PROJECT_CONFIG_NAME = ".designcrew.yml"

TIER_MODES = {"priority", "dependencies"}
WORKER_KINDS = {"template", "cli", "llm"}
THEMES = {"dark", "light", "no_color"}

DEFAULT_CLI_COMMAND = "claude -p --output-format text"


# ── Configuration metadata and validation ──


@dataclass
class ConfigFieldSpec:
    """Configuration field specification with validation rules.

    The same bounds and choices drive both strict validation (``designcrew
    config set``) and lenient loading, where bad file values are clamped or
    replaced by the default.
    """
    key: str
    field_name: str
    description: str
    value_type: str  # "str", "int", "bool"
    default: Any
    min_value: Optional[int] = None
    max_value: Optional[int] = None
    choices: Optional[Set[str]] = None
    validator: Optional[Callable[[Any], tuple]] = None  # (valid, coerced_value, error_msg)


def _validate_int_range(value: Any, min_val: int, max_val: int) -> tuple:
    """Validate integer within range."""
    if isinstance(value, bool):
        return False, 0, "Must be an integer"
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        return False, 0, "Must be an integer"
    if parsed < min_val or parsed > max_val:
        return False, max(min_val, min(max_val, parsed)), f"Must be between {min_val} and {max_val}"
    return True, parsed, ""


def _validate_enum(value: Any, valid_values: set) -> tuple:
    """Validate value is in allowed set."""
    val_str = str(value).strip().lower()
    if val_str not in valid_values:
        return False, "", f"Must be one of: {', '.join(sorted(valid_values))}"
    return True, val_str, ""


def _validate_bool(value: Any) -> tuple:
    """Validate boolean value."""
    if isinstance(value, bool):
        return True, value, ""
    if isinstance(value, str):
        val_lower = value.strip().lower()
        if val_lower in ("1", "true", "yes", "on"):
            return True, True, ""
        if val_lower in ("0", "false", "no", "off"):
            return True, False, ""
    return False, False, "Must be true/false, yes/no, on/off, or 1/0"


def _validate_branch_prefix(value: Any) -> tuple:
    text = str(value or "").strip()
    if not text or " " in text or ".." in text or text.startswith("-"):
        return False, "", "Must be a non-empty git ref prefix without spaces or '..'"
    return True, text, ""


def _validate_path(value: Any) -> tuple:
    text = str(value or "").strip()
    if not text:
        return False, "", "Must be a non-empty path"
    return True, text, ""


CONFIG_FIELDS: Dict[str, ConfigFieldSpec] = {
    "worktree-base": ConfigFieldSpec(
        key="worktree-base",
        field_name="worktree_base",
        description="Directory holding per-task worktrees (relative to the project)",
        value_type="str",
        default="../worktrees",
        validator=_validate_path,
    ),
    "branch-prefix": ConfigFieldSpec(
        key="branch-prefix",
        field_name="branch_prefix",
        description="Prefix of each task's branch",
        value_type="str",
        default="feature/",
        validator=_validate_branch_prefix,
    ),
    "max-parallel": ConfigFieldSpec(
        key="max-parallel",
        field_name="max_parallel",
        description="Maximum tasks running at once inside a tier",
        value_type="int",
        default=3,
        min_value=1,
        max_value=32,
    ),
    "provision-parallel": ConfigFieldSpec(
        key="provision-parallel",
        field_name="provision_parallel",
        description="Maximum workspaces created at once",
        value_type="int",
        default=1,
        min_value=1,
        max_value=16,
    ),
    "task-timeout": ConfigFieldSpec(
        key="task-timeout",
        field_name="task_timeout",
        description="Per-task time limit in seconds",
        value_type="int",
        default=300,
        min_value=1,
        max_value=7200,
    ),
    "tier-mode": ConfigFieldSpec(
        key="tier-mode",
        field_name="tier_mode",
        description="How tasks are grouped into tiers (priority/dependencies)",
        value_type="str",
        default="priority",
        choices=TIER_MODES,
    ),
    "use-worktrees": ConfigFieldSpec(
        key="use-worktrees",
        field_name="use_worktrees",
        description="Give every task its own git worktree",
        value_type="bool",
        default=True,
    ),
    "write-tokens": ConfigFieldSpec(
        key="write-tokens",
        field_name="write_tokens",
        description="Write the design tokens module after planning",
        value_type="bool",
        default=True,
    ),
    "tokens-path": ConfigFieldSpec(
        key="tokens-path",
        field_name="tokens_path",
        description="Where the design tokens module is written",
        value_type="str",
        default="src/styles/tokens.ts",
        validator=_validate_path,
    ),
    "verbose": ConfigFieldSpec(
        key="verbose",
        field_name="verbose",
        description="Show engine state changes and debug logs",
        value_type="bool",
        default=False,
    ),
    "use-unicode": ConfigFieldSpec(
        key="use-unicode",
        field_name="use_unicode",
        description="Use Unicode icons (false for ASCII)",
        value_type="bool",
        default=True,
    ),
    "theme": ConfigFieldSpec(
        key="theme",
        field_name="theme",
        description="Color theme (dark/light/no_color)",
        value_type="str",
        default="dark",
        choices=THEMES,
    ),
}


def validate_config_value(key: str, value: Any) -> tuple:
    """
    Validate a configuration value.

    Returns:
        (is_valid, coerced_value, error_message)
    """
    if key not in CONFIG_FIELDS:
        return False, value, f"Unknown configuration key: {key}"

    spec = CONFIG_FIELDS[key]
    if spec.validator:
        return spec.validator(value)
    if spec.choices:
        return _validate_enum(value, spec.choices)

    if spec.value_type == "int":
        return _validate_int_range(value, spec.min_value or 1, spec.max_value or 100000)
    if spec.value_type == "bool":
        return _validate_bool(value)
    return True, str(value), ""


@dataclass
class ModelSettings:
    """Model used by the LLM planner and the LLM worker."""
    model: str = "openai/gpt-4o-mini"
    api_base: Optional[str] = None
    api_key: Optional[str] = None
    api_key_env: Optional[str] = None
    temperature: float = 0.0
    max_tokens: int = 4096

    @property
    def provider(self) -> str:
        return self.model.split("/", 1)[0] if "/" in self.model else "openai"

    def resolve_api_key(self) -> Optional[str]:
        if self.api_key:
            return self.api_key
        if self.api_key_env:
            return os.environ.get(self.api_key_env)
        env_map = {
            "openai": "OPENAI_API_KEY", "anthropic": "ANTHROPIC_API_KEY",
            "deepseek": "DEEPSEEK_API_KEY", "gemini": "GEMINI_API_KEY",
        }
        env_var = env_map.get(self.provider)
        return os.environ.get(env_var) if env_var else None

    def get_llm_kwargs(self) -> dict:
        """Return kwargs dict for LLMAdapter constructor; passed directly, no env vars."""
        return {
            "model": self.model,
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
            "api_base": self.api_base,
            "api_key": self.resolve_api_key(),
        }


@dataclass
class WorkerSettings:
    kind: str = "cli"
    command: str = DEFAULT_CLI_COMMAND
    commit: bool = False
    overwrite: bool = False
    commit_prefix: str = "designcrew: "


@dataclass
class Config:
    worktree_base: str = "../worktrees"
    branch_prefix: str = "feature/"
    max_parallel: int = 3
    provision_parallel: int = 1
    task_timeout: int = 300
    tier_mode: str = "priority"
    use_worktrees: bool = True
    write_tokens: bool = True
    tokens_path: str = "src/styles/tokens.ts"
    verbose: bool = False
    use_unicode: bool = True
    theme: str = "dark"
    worker: WorkerSettings = field(default_factory=WorkerSettings)
    model: ModelSettings = field(default_factory=ModelSettings)
    project_root: Optional[str] = None
    _config_source: str = ""

    @classmethod
    def load(cls, project_dir: str = ".") -> "Config":
        config = cls()
        project_path = Path(project_dir).resolve()

        for env_path in [CONFIG_DIR / ".env", project_path / ".env"]:
            if env_path.exists():
                load_dotenv(env_path, override=False)

        git_root = cls._find_git_root(project_path)
        for candidate in [
            project_path / PROJECT_CONFIG_NAME,
            (git_root / PROJECT_CONFIG_NAME) if git_root and git_root != project_path else None,
            CONFIG_FILE,
        ]:
            if candidate and candidate.exists():
                config._load_yaml(candidate)
                config._config_source = str(candidate)
                break

        config._apply_env()
        config.project_root = str(project_path)
        return config

    @classmethod
    def from_dict(cls, data: Dict[str, Any], project_root: Optional[str] = None) -> "Config":
        config = cls()
        config._apply_dict(data or {})
        config.project_root = project_root
        return config

    def _load_yaml(self, filepath: Path):
        try:
            with open(filepath) as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            _log.warning("Ignoring unreadable config %s: %s", filepath, e)
            return
        if not isinstance(data, dict):
            _log.warning("Ignoring config %s: top level is not a mapping", filepath)
            return
        self._apply_dict(data)

    @classmethod
    def _lenient(cls, spec: ConfigFieldSpec, raw: Any, default: Any = None) -> Any:
        """Coerce a file or env value; out-of-range ints clamp, anything else bad falls back."""
        default = spec.default if default is None else default
        if raw is None:
            return default
        if spec.value_type == "int":
            return cls._coerce_positive_int(
                raw, default=default, min_value=spec.min_value or 1, max_value=spec.max_value or 100000,
            )
        if spec.value_type == "bool":
            return cls._coerce_bool(raw, default=default)
        if spec.choices:
            return cls._normalize_enum(raw, spec.choices, default)
        ok, value, error = validate_config_value(spec.key, raw)
        if not ok:
            _log.warning("Ignoring %s=%r: %s", spec.key, raw, error)
            return default
        return value

    def _apply_dict(self, data: Dict[str, Any]):
        for key, spec in CONFIG_FIELDS.items():
            setattr(self, spec.field_name, self._lenient(spec, data.get(key)))

        w = data.get("worker") or {}
        if isinstance(w, dict):
            self.worker = WorkerSettings(
                kind=self._normalize_enum(w.get("kind"), WORKER_KINDS, "cli"),
                command=str(w.get("command") or DEFAULT_CLI_COMMAND),
                commit=self._coerce_bool(w.get("commit", False), default=False),
                overwrite=self._coerce_bool(w.get("overwrite", False), default=False),
                commit_prefix=str(w.get("commit-prefix", "designcrew: ")),
            )

        m = data.get("model") or {}
        if isinstance(m, dict):
            try:
                temperature = float(m.get("temperature", 0.0))
            except (TypeError, ValueError):
                temperature = 0.0
            self.model = ModelSettings(
                model=str(m.get("model") or "openai/gpt-4o-mini"),
                api_base=m.get("api-base"),
                api_key=m.get("api-key"),
                api_key_env=m.get("api-key-env"),
                temperature=temperature,
                max_tokens=self._coerce_positive_int(
                    m.get("max-tokens", 4096), default=4096, min_value=256, max_value=200000
                ),
            )

    def _apply_env(self):
        env_map = {
            "DESIGNCREW_MAX_PARALLEL": "max-parallel",
            "DESIGNCREW_TASK_TIMEOUT": "task-timeout",
            "DESIGNCREW_VERBOSE": "verbose",
        }
        for env_var, key in env_map.items():
            val = os.environ.get(env_var)
            if val:
                spec = CONFIG_FIELDS[key]
                current = getattr(self, spec.field_name)
                setattr(self, spec.field_name, self._lenient(spec, val, default=current))

        kind = os.environ.get("DESIGNCREW_WORKER")
        if kind:
            self.worker.kind = self._normalize_enum(kind, WORKER_KINDS, self.worker.kind)

    # ── Derived values ──

    @property
    def root(self) -> Path:
        return Path(self.project_root or ".").resolve()

    @property
    def worktree_base_path(self) -> Path:
        base = Path(self.worktree_base).expanduser()
        if not base.is_absolute():
            base = self.root / base
        return base.resolve()

    @property
    def tokens_file(self) -> Path:
        path = Path(self.tokens_path)
        return path if path.is_absolute() else self.root / path

    @property
    def source(self) -> str:
        return self._config_source

    def summary(self) -> dict:
        return {
            "config": self._config_source or "(defaults)",
            "worker": self.worker.kind,
            "max-parallel": self.max_parallel,
            "task-timeout": self.task_timeout,
            "tier-mode": self.tier_mode,
            "worktrees": str(self.worktree_base_path) if self.use_worktrees else "disabled",
            "branch-prefix": self.branch_prefix,
        }

    def get_config_value(self, key: str) -> Any:
        if key not in CONFIG_FIELDS:
            return None
        spec = CONFIG_FIELDS[key]
        return getattr(self, spec.field_name, spec.default)

    def set_config_value(self, key: str, value: Any) -> tuple:
        """
        Set a top-level value with validation (in memory only).

        Returns:
            (success, error_message)
        """
        is_valid, coerced_value, error_msg = validate_config_value(key, value)
        if not is_valid:
            return False, error_msg
        setattr(self, CONFIG_FIELDS[key].field_name, coerced_value)
        return True, ""

    def override(self, key: str, value: Any) -> None:
        """Apply a command-line override with the same coercion as the config file."""
        spec = CONFIG_FIELDS[key]
        current = getattr(self, spec.field_name)
        setattr(self, spec.field_name, self._lenient(spec, value, default=current))

    def reset_config_value(self, key: str) -> tuple:
        if key not in CONFIG_FIELDS:
            return False, f"Unknown configuration key: {key}"
        spec = CONFIG_FIELDS[key]
        setattr(self, spec.field_name, spec.default)
        return True, ""

    def modified_keys(self) -> list:
        """Keys whose current value differs from the built-in default."""
        return [k for k, spec in CONFIG_FIELDS.items()
                if getattr(self, spec.field_name) != spec.default]

    @property
    def project_file(self) -> Path:
        return self.root / PROJECT_CONFIG_NAME

    def save_value(self, key: str, value: Any = None, reset: bool = False) -> Path:
        """Write one top-level key to the project ``.designcrew.yml``.

        Other keys already in the file are kept. With ``reset`` the key is
        removed so the default applies again.
        """
        target = self.project_file
        data: Dict[str, Any] = {}
        if target.exists():
            try:
                with open(target) as f:
                    loaded = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ValueError(f"{target} is not valid YAML: {e}") from e
            if not isinstance(loaded, dict):
                raise ValueError(f"{target} does not hold a mapping")
            data = loaded
        if reset:
            data.pop(key, None)
        else:
            data[key] = value
        with open(target, "w") as f:
            yaml.dump(data, f, default_flow_style=False, sort_keys=False, allow_unicode=True)
        self._config_source = str(target)
        return target

    @staticmethod
    def _normalize_enum(value, valid: set, default: str) -> str:
        text = str(value or "").strip().lower()
        return text if text in valid else default

    @staticmethod
    def _coerce_bool(value, default: bool) -> bool:
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            text = value.strip().lower()
            if text in ("1", "true", "yes", "on"):
                return True
            if text in ("0", "false", "no", "off"):
                return False
        if isinstance(value, (int, float)):
            return bool(value)
        return default

    @staticmethod
    def _coerce_positive_int(value, default: int, min_value: int = 1, max_value: int = 100000) -> int:
        if isinstance(value, bool):
            return default
        try:
            parsed = int(value)
        except (TypeError, ValueError):
            return default
        if parsed < min_value:
            return min_value
        if parsed > max_value:
            return max_value
        return parsed

    @staticmethod
    def _find_git_root(path: Path) -> Optional[Path]:
        current = path
        while current != current.parent:
            if (current / ".git").exists():
                return current
            current = current.parent
        return None
