"""Round definitions for the three-round generation pipeline.

Each round has a fixed role and system prompt:
- ANALYSIS: turn the user's description into concrete requirements
- FEASIBILITY: assess how to realise the requirements with p5.js
- CODEGEN: write the p5.js code from the technical plan
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)


class Round(int, Enum):
    """Pipeline rounds, numbered in execution order."""
    ANALYSIS = 1
    FEASIBILITY = 2
    CODEGEN = 3

    @property
    def key(self) -> str:
        """Stable identifier used for prompt override files."""
        return {
            Round.ANALYSIS: "analysis",
            Round.FEASIBILITY: "feasibility",
            Round.CODEGEN: "codegen",
        }[self]

    @property
    def display_name(self) -> str:
        return {
            Round.ANALYSIS: "需求分析",
            Round.FEASIBILITY: "技术评估",
            Round.CODEGEN: "代码生成",
        }[self]


DEFAULT_PROMPTS: Dict[Round, str] = {
    Round.ANALYSIS: """你是一名数学可视化需求分析师。

阅读用户对数学概念或算法的描述，整理出动画需求：
- 要展示的数学概念与关键公式
- 画面中需要出现的视觉元素
- 动画随时间变化的方式
- 需要的交互（如果有）

用条理清晰的中文列表输出需求分析，不要编写代码。""",

    Round.FEASIBILITY: """你是一名p5.js技术专家。

根据给出的需求分析，评估用p5.js实现的技术方案：
- 画布尺寸（默认400x400）与坐标系安排
- 需要用到的p5.js函数
- 数学计算方法与每帧的状态更新策略
- 可能的性能问题及简化方案

输出可以直接指导编码的技术方案，不要编写完整代码。""",

    Round.CODEGEN: """你是一个专业的p5.js代码生成专家。

根据给出的技术方案编写完整可运行的p5.js代码：
1. 使用setup()和draw()函数结构，在setup()中调用createCanvas(400, 400)
2. 代码自包含，不依赖外部资源
3. 添加注释解释其中的数学概念
4. 动画流畅并具有教育意义

只输出一个```javascript代码块。""",
}


@dataclass
class RoundConfig:
    """Configuration for a pipeline round.

    Attributes:
        round: The round enum value
        system_prompt: System prompt sent with this round's request
        display_name: Label shown in progress updates
    """
    round: Round
    system_prompt: str
    display_name: str


class RoundCoordinator:
    """Provides the fixed prompt and label for each round.

    Prompts can be overridden by ``<prompts_dir>/<round.key>_system_prompt.md``
    files and labels by ``display_names``.

    Example:
        coordinator = RoundCoordinator()
        for config in coordinator.configs():
            print(config.round.value, config.display_name)
    """

    def __init__(self, prompts_dir: Optional[Path] = None, display_names: Optional[Dict[Round, str]] = None):
        self.prompts_dir = Path(prompts_dir) if prompts_dir else None
        self._configs: Dict[Round, RoundConfig] = {}

        names = display_names or {}
        for rnd in Round:
            self._configs[rnd] = RoundConfig(
                round=rnd,
                system_prompt=self._load_prompt(rnd),
                display_name=names.get(rnd, rnd.display_name),
            )

    def _load_prompt(self, rnd: Round) -> str:
        if self.prompts_dir is not None:
            prompt_file = self.prompts_dir / f"{rnd.key}_system_prompt.md"
            if prompt_file.exists():
                logger.debug("Loading %s prompt from %s", rnd.key, prompt_file)
                return prompt_file.read_text(encoding="utf-8")
        return DEFAULT_PROMPTS[rnd]

    def get_config(self, rnd: Round) -> RoundConfig:
        return self._configs[rnd]

    def get_system_prompt(self, rnd: Round) -> str:
        return self._configs[rnd].system_prompt

    def get_display_name(self, rnd: Round) -> str:
        return self._configs[rnd].display_name

    def configs(self) -> List[RoundConfig]:
        """All round configs in execution order."""
        return [self._configs[rnd] for rnd in Round]
