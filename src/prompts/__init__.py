"""Prompt loading and rendering utilities."""

from prompts.loader import get_prompt_path, load_prompt

__all__ = ["load_prompt", "get_prompt_path"]
