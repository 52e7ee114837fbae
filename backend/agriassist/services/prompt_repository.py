"""
File-backed prompt templates, one per feature.

Templates are plain text files under agriassist/prompts using str.format
placeholders. `.prompt` files are user prompts, `.system` files are system
instructions.
"""

from __future__ import annotations

from pathlib import Path
from typing import Dict, Optional


class PromptTemplateError(KeyError):
    """Template is missing or was rendered without a required value"""


class PromptRepository:
    def __init__(self, prompts_root: Optional[Path] = None):
        # Default: backend/agriassist/prompts
        if prompts_root is None:
            prompts_root = Path(__file__).resolve().parents[1] / "prompts"
        self.prompts_root = prompts_root
        self._cache: Dict[str, str] = {}

    def _read(self, filename: str) -> str:
        if filename not in self._cache:
            path = self.prompts_root / filename
            try:
                self._cache[filename] = path.read_text(encoding="utf-8").strip()
            except FileNotFoundError as e:
                raise PromptTemplateError(f"Prompt template not found: {path}") from e
        return self._cache[filename]

    def get_system_prompt(self, name: str) -> str:
        return self._read(f"{name}.system")

    def get_template(self, name: str) -> str:
        return self._read(f"{name}.prompt")

    def render(self, template_name: str, /, **values: object) -> str:
        """Fill a `.prompt` template; `values` may use any placeholder name"""
        template = self.get_template(template_name)
        try:
            return template.format(**values)
        except KeyError as e:
            raise PromptTemplateError(f"Prompt '{template_name}' requires value {e}") from e


_prompt_repository: Optional[PromptRepository] = None


def get_prompt_repository() -> PromptRepository:
    """Get global prompt repository instance"""
    global _prompt_repository
    if _prompt_repository is None:
        _prompt_repository = PromptRepository()
    return _prompt_repository
