"""Factory pour selectionner le parseur adapte a la mise en page du bulletin."""

from pathlib import Path
from typing import Optional, Union

from veripay.config.constants import SUPPORTED_EXTENSIONS, TypeBulletin
from veripay.core.exceptions import UnsupportedFormatError
from veripay.parsers.base_parser import BaseBulletinParser
from veripay.parsers.clarifie_parser import ClarifieParser
from veripay.parsers.classification import detecter_type_bulletin
from veripay.parsers.detaille_parser import DetailleParser


class ParserFactory:
    """Selectionne et instancie le parseur adapte a chaque bloc de texte."""

    def __init__(self, type_defaut: TypeBulletin = TypeBulletin.DETAILLE):
        self.type_defaut = type_defaut
        self._parsers: dict[TypeBulletin, BaseBulletinParser] = {
            TypeBulletin.DETAILLE: DetailleParser(),
            TypeBulletin.CLARIFIE: ClarifieParser(),
        }

    def get_parser(
        self,
        texte: str,
        type_force: Optional[Union[TypeBulletin, str]] = None,
        nom_fichier: Optional[str] = None,
    ) -> BaseBulletinParser:
        """Retourne le parseur du bloc (type force > nom du fichier > contenu)."""
        type_force = self.normaliser_type(type_force)
        type_bulletin = detecter_type_bulletin(texte, type_force, nom_fichier, self.type_defaut)
        return self._parsers[type_bulletin]

    @staticmethod
    def normaliser_type(type_force: Optional[Union[TypeBulletin, str]]) -> Optional[TypeBulletin]:
        """Valide un type force ; leve UnsupportedFormatError si inconnu."""
        if type_force is None or type_force == "":
            return None
        try:
            return TypeBulletin(type_force)
        except ValueError:
            raise UnsupportedFormatError(
                f"Type de bulletin '{type_force}' non supporte. "
                f"Types acceptes : {', '.join(t.value for t in TypeBulletin)}"
            )

    @staticmethod
    def verifier_extension(chemin: Path) -> str:
        """Retourne le format d'entree ("pdf" ou "texte") ou leve UnsupportedFormatError."""
        ext = chemin.suffix.lower()
        if ext not in SUPPORTED_EXTENSIONS:
            raise UnsupportedFormatError(
                f"Format '{ext}' non supporte. "
                f"Formats acceptes : {', '.join(SUPPORTED_EXTENSIONS.keys())}"
            )
        return SUPPORTED_EXTENSIONS[ext]
