"""Template matching module - slot recognition against labeled image libraries."""

from .template_library import Template, TemplateLibrary, load_libraries
from .template_matcher import TemplateMatcher, MatchResult

__all__ = ["Template", "TemplateLibrary", "load_libraries", "TemplateMatcher", "MatchResult"]
