"""Classe de base pour tous les analyseurs."""

from abc import ABC, abstractmethod

from veripay.models.bulletins import Bulletin


class BaseAnalyzer(ABC):
    """Interface commune pour les analyseurs."""

    @property
    @abstractmethod
    def nom(self) -> str:
        """Nom de l'analyseur."""

    @abstractmethod
    def analyser(self, bulletins: list[Bulletin]):
        """Analyse un lot de bulletins et retourne les resultats."""
