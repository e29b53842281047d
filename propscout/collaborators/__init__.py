"""Pluggable extraction and enhancement collaborators."""

from propscout.collaborators.base import Enhancer, Extractor
from propscout.collaborators.loader import load_collaborator, load_enhancer, load_extractor
from propscout.collaborators.passthrough import JsonExtractor, NullExtractor, PassthroughEnhancer

__all__ = [
    "Extractor",
    "Enhancer",
    "NullExtractor",
    "JsonExtractor",
    "PassthroughEnhancer",
    "load_collaborator",
    "load_extractor",
    "load_enhancer",
]
