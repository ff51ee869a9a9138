"""Prompt templates for visual enrichment and table summaries."""

from .vision_prompt import TABLE_SUMMARY_PROMPT, build_vision_prompt

__all__ = ["TABLE_SUMMARY_PROMPT", "build_vision_prompt"]
