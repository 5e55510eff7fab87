"""
System prompt templates
"""

import re
from pathlib import Path
from typing import Optional

from shortform_trends.errors import NotFoundError


PROMPTS_DIR = Path(__file__).parent

_VARIABLE_PATTERN = re.compile(r"\{\{\s*(\w+)\s*\}\}")


class PromptLibrary:
    """Loads ``<name>.md`` templates once per instance"""

    def __init__(self, directory: Optional[Path] = None):
        self.directory = Path(directory) if directory else PROMPTS_DIR
        self._cache: dict[str, str] = {}

    def path_for(self, name: str) -> Path:
        return self.directory / f"{name}.md"

    def exists(self, name: str) -> bool:
        return self.path_for(name).is_file()

    def available(self) -> list[str]:
        return sorted(p.stem for p in self.directory.glob("*.md"))

    def load(self, name: str) -> str:
        if name in self._cache:
            return self._cache[name]

        path = self.path_for(name)
        if not path.is_file():
            raise NotFoundError(f"Prompt template not found: {name}")

        content = path.read_text(encoding="utf-8")
        self._cache[name] = content
        return content

    def render(self, template_name: str, /, **variables) -> str:
        """Load a template and substitute ``{{var}}`` placeholders; unknown ones are left as-is"""
        template = self.load(template_name)

        def replace(match: re.Match) -> str:
            key = match.group(1)
            return str(variables[key]) if key in variables else match.group(0)

        return _VARIABLE_PATTERN.sub(replace, template)

    def preload(self):
        for name in self.available():
            self.load(name)

    def clear(self, name: Optional[str] = None):
        if name is None:
            self._cache.clear()
        else:
            self._cache.pop(name, None)
