"""
スクリプトジェネレーター — フレームワーク名からジェネレーターを引くレジストリ

対応フレームワーク:
  - playwright: Playwright（TypeScript）
  - cypress: Cypress
  - pest: Pest（Laravel Dusk）
  - playwright-python: Playwright for Python（pytest-playwright）
"""

from __future__ import annotations

import logging
from typing import Optional, Sequence

from e2erec.export.types import ActionLike, StepLike

from .base import E2EGenerator, OptionsLike, ScriptGenerator, escape_string, steps_to_actions
from .cypress import CypressGenerator
from .pest import PestGenerator
from .playwright import PlaywrightGenerator
from .playwright_python import PlaywrightPythonGenerator

logger = logging.getLogger(__name__)

E2E_GENERATORS: tuple[ScriptGenerator, ...] = (
    PlaywrightGenerator(),
    CypressGenerator(),
    PestGenerator(),
    PlaywrightPythonGenerator(),
)

_REGISTRY: dict[str, ScriptGenerator] = {generator.name: generator for generator in E2E_GENERATORS}


def get_e2e_generator(framework: str) -> Optional[ScriptGenerator]:
    """フレームワーク名に対応するジェネレーターを返す。未知の名前は None。"""
    generator = _REGISTRY.get(framework)
    if generator is None:
        logger.warning("未対応のフレームワークです: %s", framework)
    return generator


def generate_e2e_script(
    framework: str, actions: Sequence[ActionLike], options: OptionsLike = None,
) -> Optional[str]:
    """アクション列からスクリプトを生成する。未知のフレームワークは None。"""
    generator = get_e2e_generator(framework)
    return generator.generate(actions, options) if generator else None


def generate_e2e_from_recording(
    framework: str, steps: Sequence[StepLike], options: OptionsLike = None,
) -> Optional[str]:
    """記録ステップ列からスクリプトを生成する。未知のフレームワークは None。"""
    generator = get_e2e_generator(framework)
    return generator.generate_from_recording(steps, options) if generator else None


__all__ = [
    "CypressGenerator",
    "E2EGenerator",
    "E2E_GENERATORS",
    "PestGenerator",
    "PlaywrightGenerator",
    "PlaywrightPythonGenerator",
    "ScriptGenerator",
    "escape_string",
    "generate_e2e_from_recording",
    "generate_e2e_script",
    "get_e2e_generator",
    "steps_to_actions",
]
