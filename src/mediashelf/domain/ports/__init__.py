"""Ports (interfaces) the domain depends on."""

from __future__ import annotations

from .enrichment import CoverResolver, Translator
from .fetching import MetadataFetcher
from .persistence import CatalogRepository, Repository, UserStateRepository
from .unit_of_work import CatalogRepositories, CatalogUnitOfWork, RepositoryCollection, UnitOfWork

__all__ = [
    "CatalogRepositories",
    "CatalogRepository",
    "CatalogUnitOfWork",
    "CoverResolver",
    "MetadataFetcher",
    "Repository",
    "RepositoryCollection",
    "Translator",
    "UnitOfWork",
    "UserStateRepository",
]
