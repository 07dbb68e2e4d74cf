"""Configuration management for SimpleMath.

Settings for the completion endpoint live in a ``Settings`` dataclass. The
``SettingsStore`` persists them through a key-value storage backend and
offers the update/reset/import/export operations used by the CLI.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional
from urllib.parse import urlparse

from .conversation.storage import KeyValueStorage
from .errors import ConfigurationError, PersistenceError

logger = logging.getLogger(__name__)

DEFAULT_SYSTEM_PROMPT = """你是一个专业的p5.js代码生成专家，专门为数学概念和算法创建可视化动画代码。

请遵循以下规则：
1. 生成完整可运行的p5.js代码
2. 使用setup()和draw()函数结构
3. 代码应该是自包含的，不依赖外部资源
4. 添加适当的注释解释数学概念
5. 确保动画流畅且具有教育意义
6. 使用合适的颜色和视觉效果
7. 代码应该在400x400像素的画布上运行良好

请只返回p5.js代码，不要包含其他解释文字。"""


@dataclass
class Settings:
    """Completion endpoint settings.

    Attributes:
        api_key: Bearer credential for the endpoint
        base_url: Endpoint base, normalized to end with /v1 at request time
        model: Model name sent with every request
        temperature: Sampling temperature
        max_tokens: Completion token cap
        system_prompt: Default system prompt for single-shot generation
        timeout: Total request timeout in seconds
    """
    api_key: str = ""
    base_url: str = "https://api.openai.com/v1"
    model: str = "gpt-4"
    temperature: float = 0.7
    max_tokens: int = 2000
    system_prompt: str = DEFAULT_SYSTEM_PROMPT
    timeout: int = 300

    @classmethod
    def from_env(cls, base: Optional["Settings"] = None) -> "Settings":
        """Overlay OPENAI_API_KEY, OPENAI_API_BASE and SIMPLEMATH_MODEL."""
        settings = cls(**asdict(base)) if base else cls()
        if os.environ.get("OPENAI_API_KEY"):
            settings.api_key = os.environ["OPENAI_API_KEY"]
        if os.environ.get("OPENAI_API_BASE"):
            settings.base_url = os.environ["OPENAI_API_BASE"]
        if os.environ.get("SIMPLEMATH_MODEL"):
            settings.model = os.environ["SIMPLEMATH_MODEL"]
        return settings

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Settings":
        """Build settings from a dict, ignoring unknown keys.

        Null values count as unset and fall back to the field default.
        """
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known and v is not None})


@dataclass
class OrchestratorConfig:
    """Configuration for the round orchestrator.

    Attributes:
        default_title: Title given to animations created from round 3 output
        prompts_dir: Optional directory with ``<round>_system_prompt.md`` overrides
        animation_width: Canvas width requested from the animation service
        animation_height: Canvas height requested from the animation service
    """
    default_title: str = "AI生成的数学动画"
    prompts_dir: Optional[Path] = None
    animation_width: int = 400
    animation_height: int = 400


class SettingsStore:
    """Holds the current Settings and persists every change."""

    STORAGE_KEY = "simplemath_settings"

    def __init__(self, storage: KeyValueStorage, defaults: Optional[Settings] = None):
        self._storage = storage
        self._defaults = defaults or Settings()
        # One shared instance; clients holding it see every later change.
        self.settings = Settings(**asdict(self._defaults))
        self.load()

    def _apply(self, data: Dict[str, Any]) -> None:
        merged = Settings.from_dict(data)
        for f in fields(Settings):
            setattr(self.settings, f.name, getattr(merged, f.name))

    @property
    def is_configured(self) -> bool:
        return self.settings.api_key.strip() != ""

    def update(self, **changes: Any) -> Settings:
        """Apply partial changes and persist.

        Raises:
            ConfigurationError: If a change names an unknown setting
        """
        known = {f.name for f in fields(Settings)}
        unknown = set(changes) - known
        if unknown:
            raise ConfigurationError(f"Unknown settings: {', '.join(sorted(unknown))}")

        merged = self.settings.to_dict()
        merged.update(changes)
        self._apply(merged)
        self.save()
        return self.settings

    def reset_to_defaults(self) -> Settings:
        self._apply(self._defaults.to_dict())
        self.save()
        return self.settings

    @staticmethod
    def validate_api_key(api_key: str) -> bool:
        return len(api_key.strip()) > 0

    @staticmethod
    def validate_url(url: str) -> bool:
        parsed = urlparse(url)
        return bool(parsed.scheme) and bool(parsed.netloc)

    def load(self) -> None:
        """Load persisted settings over the defaults; bad data yields defaults."""
        try:
            raw = self._storage.get(self.STORAGE_KEY)
            if raw is None:
                return
            data = json.loads(raw)
            if not isinstance(data, dict):
                raise ValueError("settings snapshot is not an object")
            merged = self._defaults.to_dict()
            merged.update(data)
            self._apply(merged)
        except (PersistenceError, ValueError, TypeError) as e:
            logger.warning("Failed to load settings, using defaults: %s", e)
            self._apply(self._defaults.to_dict())

    def save(self) -> None:
        try:
            self._storage.set(self.STORAGE_KEY, json.dumps(self.settings.to_dict(), ensure_ascii=False))
        except PersistenceError as e:
            logger.warning("Failed to save settings: %s", e)

    def export_to(self, path: Path) -> Path:
        """Write the current settings to a JSON file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(self.settings.to_dict(), f, indent=2, ensure_ascii=False)
        return path

    def import_from(self, path: Path) -> Settings:
        """Replace settings with the contents of a JSON file.

        Raises:
            ConfigurationError: If the file cannot be read or parsed
        """
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            raise ConfigurationError(f"Invalid settings file format: {e}") from e
        if not isinstance(data, dict):
            raise ConfigurationError("Invalid settings file format")

        merged = self._defaults.to_dict()
        merged.update(data)
        self._apply(merged)
        self.save()
        return self.settings
