#!/usr/bin/env python3
"""
IncidentProbe Core - Multi-agent incident investigation engine
Copyright (C) 2025 Christian Gennaro Faraone

This program is free software: you can redistribute it and/or modify
it under the terms of the GNU Affero General Public License as published by
the Free Software Foundation, either version 3 of the License, or
(at your option) any later version.

This program is distributed in the hope that it will be useful,
but WITHOUT ANY WARRANTY; without even the implied warranty of
MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
GNU Affero General Public License for more details.

You should have received a copy of the GNU Affero General Public License
along with this program.  If not, see <https://www.gnu.org/licenses/>.

"""

from functools import lru_cache
from pathlib import Path
from typing import Dict, Any, List, Optional

from .logger import get_logger

logger = get_logger(__name__)

# Base directory for prompts
PROMPTS_DIR = Path(__file__).parent.parent / "prompts"


@lru_cache(maxsize=None)
def _read_prompt(prompt_name: str) -> str:
    prompt_file = PROMPTS_DIR / f"{prompt_name}.md"
    if not prompt_file.exists():
        raise FileNotFoundError(f"Prompt file not found: {prompt_name} (searched in {PROMPTS_DIR})")
    return prompt_file.read_text(encoding="utf-8")


def load_prompt(prompt_name: str, variables: Optional[Dict[str, Any]] = None) -> str:
    """
    Load a prompt from a markdown file.

    Args:
        prompt_name: Name of the prompt file (without extension)
        variables: Optional variables for ``str.format`` substitution

    Returns:
        The loaded prompt text

    Raises:
        FileNotFoundError: If the prompt file doesn't exist
    """
    try:
        prompt_text = _read_prompt(prompt_name)
        if variables:
            prompt_text = prompt_text.format(**variables)
        logger.debug(f"Loaded prompt '{prompt_name}' ({len(prompt_text)} chars)")
        return prompt_text
    except Exception as e:
        logger.error(f"Failed to load prompt '{prompt_name}': {e}")
        raise


def list_available_prompts() -> List[str]:
    """List all available prompt names."""
    if not PROMPTS_DIR.exists():
        return []
    return sorted(path.stem for path in PROMPTS_DIR.glob("*.md"))
