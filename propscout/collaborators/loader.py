"""Resolve collaborator objects from ``module:attribute`` paths.

Settings name collaborators by import path so that deployments can plug in
their own extraction or enhancement service without code changes::

    EXTRACTOR=mycompany.llm:ListingExtractor
    ENHANCER=mycompany.llm:make_enhancer

The attribute may be a class (instantiated without arguments), a factory
callable (called without arguments), or a ready instance.
"""

from __future__ import annotations

import importlib
import inspect
import logging
from typing import Any

from propscout.collaborators.base import Enhancer, Extractor
from propscout.core.exceptions import CollaboratorError
from propscout.core.settings import Settings

__all__ = ["load_collaborator", "load_extractor", "load_enhancer"]

logger = logging.getLogger(__name__)


def load_collaborator(path: str, *, required_method: str) -> Any:
    """Import *path* and return a collaborator exposing *required_method*.

    Raises:
        CollaboratorError: If the module or attribute cannot be imported, the
            factory raises, or the result lacks *required_method*.
    """
    module_name, _, attr = path.partition(":")
    if not module_name or not attr:
        raise CollaboratorError(f"Collaborator path must be 'module:attr', got {path!r}")

    try:
        module = importlib.import_module(module_name)
        target = getattr(module, attr)
    except (ImportError, AttributeError) as exc:
        raise CollaboratorError(f"Cannot import collaborator {path!r}: {exc}") from exc

    if inspect.isclass(target) or (callable(target) and not hasattr(target, required_method)):
        try:
            target = target()
        except Exception as exc:
            raise CollaboratorError(f"Collaborator factory {path!r} failed: {exc}") from exc

    method = getattr(target, required_method, None)
    if method is None or not inspect.iscoroutinefunction(method):
        raise CollaboratorError(
            f"Collaborator {path!r} has no async {required_method}() method"
        )

    logger.info("Loaded collaborator %s (%s)", path, type(target).__name__)
    return target


def load_extractor(settings: Settings) -> Extractor:
    return load_collaborator(settings.extractor, required_method="extract")


def load_enhancer(settings: Settings) -> Enhancer:
    return load_collaborator(settings.enhancer, required_method="enhance")
