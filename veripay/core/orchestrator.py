"""Orchestrateur principal de la verification des bulletins.

Coordonne l'ensemble du workflow :
1. Extraction du texte (PDF ou texte deja extrait)
2. Decoupage en bulletins et detection de la mise en page
3. Parsing, recalcul et verification de chaque bulletin
4. Detection des erreurs de parametrage sur le lot
5. Generation du rapport
"""

import logging
import time
from pathlib import Path
from typing import Optional, Union

from veripay.analyzers.anomaly_detector import AnomalyDetector
from veripay.analyzers.consistency_checker import ConsistencyChecker
from veripay.config.constants import MESSAGES_ERREURS, TypeBulletin, TypeErreur
from veripay.config.settings import AppConfig
from veripay.core.exceptions import (
    AnalysisError, ConfigError, ReportError, UnsupportedFormatError, VeriPayError,
)
from veripay.models.bulletins import Bulletin, BulletinDetaille
from veripay.models.resultats import (
    ErreurParametrage,
    RapportDocument,
    ResultatAnalyse,
    ResultatExtraction,
    SessionAnalyse,
)
from veripay.parsers.parser_factory import ParserFactory
from veripay.parsers.pdf_parser import extraire_texte_fichier, extraire_texte_pdf
from veripay.parsers.segmentation import decouper_en_bulletins
from veripay.reporting.report_generator import ReportGenerator

logger = logging.getLogger("veripay")

TypeForce = Optional[Union[TypeBulletin, str]]
FORMATS_RAPPORT = ("html", "json")


class Orchestrator:
    """Coordonne l'analyse des bulletins d'un ou plusieurs documents."""

    def __init__(self, config: Optional[AppConfig] = None):
        self.config = config or AppConfig()
        try:
            type_defaut = TypeBulletin(self.config.analysis.type_bulletin_defaut)
        except ValueError as e:
            raise ConfigError(
                f"Mise en page par defaut inconnue : {self.config.analysis.type_bulletin_defaut!r}"
            ) from e
        self.parser_factory = ParserFactory(type_defaut)
        self.checker = ConsistencyChecker(self.config.analysis)
        self.detector = AnomalyDetector(self.config.analysis)
        self.report_generator = ReportGenerator()
        self.session: Optional[SessionAnalyse] = None

    # --- Texte ---

    def parser_bloc(self, bloc: str, type_force: TypeForce = None, nom_fichier: Optional[str] = None) -> Bulletin:
        parser = self.parser_factory.get_parser(bloc, type_force, nom_fichier)
        return parser.parser(bloc)

    def parser_blocs(
        self,
        texte: str,
        type_force: TypeForce = None,
        nom_fichier: Optional[str] = None,
    ) -> list[Optional[Bulletin]]:
        """Un bulletin par bloc du texte, None pour un bloc illisible."""
        type_force = self.parser_factory.normaliser_type(type_force)
        bulletins: list[Optional[Bulletin]] = []
        for i, bloc in enumerate(decouper_en_bulletins(texte), 1):
            try:
                bulletins.append(self.parser_bloc(bloc, type_force, nom_fichier))
            except Exception as e:
                logger.error("Bulletin %d illisible : %s", i, e)
                bulletins.append(None)
        return bulletins

    def verifier_bulletins(self, bulletins: list[Optional[Bulletin]], nombre_pages: int = 0) -> list[ResultatExtraction]:
        """Recalcul et verification des bulletins lus ; les blocs illisibles sont omis."""
        extractions = []
        for bulletin in bulletins:
            if bulletin is None:
                continue
            try:
                verification = self.checker.verifier(bulletin)
            except Exception as e:
                logger.error("Verification impossible pour %s : %s", bulletin.salarie.nom or "?", e)
                continue
            extractions.append(ResultatExtraction(
                type_detecte=bulletin.type,
                bulletin=bulletin,
                verification=verification,
                nombre_pages=nombre_pages,
            ))
        return extractions

    def detecter_erreurs(self, bulletins: list[Optional[Bulletin]], nombre_pages: int = 0) -> ResultatAnalyse:
        """Erreurs de parametrage du lot.

        Un bloc illisible reste dans le lot avec une erreur "autre", pour que
        le nombre de bulletins corresponde au document.
        """
        lus = [b if b is not None else BulletinDetaille() for b in bulletins]
        erreurs_initiales = [
            [] if b is not None
            else [ErreurParametrage(type=TypeErreur.AUTRE, message=MESSAGES_ERREURS[TypeErreur.AUTRE])]
            for b in bulletins
        ]
        return self.detector.analyser(lus, nombre_pages, erreurs_initiales)

    def extraire_bulletins(
        self,
        texte: str,
        nombre_pages: int = 0,
        type_force: TypeForce = None,
        nom_fichier: Optional[str] = None,
    ) -> list[ResultatExtraction]:
        """Parse et verifie chaque bulletin du texte ; un bloc illisible est ignore."""
        return self.verifier_bulletins(self.parser_blocs(texte, type_force, nom_fichier), nombre_pages)

    def analyser_texte(
        self,
        texte: str,
        nombre_pages: int = 0,
        type_force: TypeForce = None,
        nom_fichier: Optional[str] = None,
    ) -> ResultatAnalyse:
        """Erreurs de parametrage de tous les bulletins d'un document."""
        return self.detecter_erreurs(self.parser_blocs(texte, type_force, nom_fichier), nombre_pages)

    # --- PDF ---

    def verifier_taille(self, taille_octets: int) -> None:
        max_octets = self.config.analysis.max_file_size_mb * 1024 * 1024
        if taille_octets > max_octets:
            raise UnsupportedFormatError(
                f"Fichier trop volumineux ({taille_octets} octets, "
                f"maximum {self.config.analysis.max_file_size_mb} Mo)"
            )

    def analyser_pdf(self, contenu: bytes, nom_fichier: Optional[str] = None,
                     type_force: TypeForce = None) -> ResultatAnalyse:
        self.verifier_taille(len(contenu))
        extraction = extraire_texte_pdf(contenu)
        return self.analyser_texte(extraction.texte, extraction.nombre_pages, type_force, nom_fichier)

    def extraire_pdf(self, contenu: bytes, nom_fichier: Optional[str] = None,
                     type_force: TypeForce = None) -> tuple[list[ResultatExtraction], int]:
        self.verifier_taille(len(contenu))
        extraction = extraire_texte_pdf(contenu)
        extractions = self.extraire_bulletins(
            extraction.texte, extraction.nombre_pages, type_force, nom_fichier)
        return extractions, extraction.nombre_pages

    # --- Fichiers (ligne de commande) ---

    def analyser_fichier(self, chemin: Path, type_force: TypeForce = None) -> RapportDocument:
        if not chemin.exists():
            raise AnalysisError(f"Fichier introuvable : {chemin}")
        self.parser_factory.verifier_extension(chemin)
        self.verifier_taille(chemin.stat().st_size)

        extraction = extraire_texte_fichier(chemin)
        bulletins = self.parser_blocs(extraction.texte, type_force, chemin.name)
        analyse = self.detecter_erreurs(bulletins, extraction.nombre_pages)
        extractions = self.verifier_bulletins(bulletins, extraction.nombre_pages)
        logger.info(
            "  %s : %d bulletin(s), %d invalide(s)",
            chemin.name, analyse.nombre_bulletins, analyse.nombre_invalides,
        )
        return RapportDocument(nom_fichier=chemin.name, analyse=analyse, extractions=extractions)

    def analyser_documents(
        self,
        chemins: list[Path],
        format_rapport: Optional[str] = None,
        type_force: TypeForce = None,
    ) -> Path:
        """Point d'entree principal : analyse une liste de documents.

        Args:
            chemins: Liste des chemins vers les fichiers a analyser.
            format_rapport: Format de sortie ("html" ou "json"), par defaut
                celui de la configuration des rapports.
            type_force: Mise en page imposee a tous les bulletins.

        Returns:
            Chemin vers le rapport genere.
        """
        format_rapport = format_rapport or self.config.report.format_defaut
        if format_rapport not in FORMATS_RAPPORT:
            raise ReportError(f"Format de rapport inconnu : {format_rapport}")

        debut = time.time()
        session = self.session = SessionAnalyse()
        logger.info("Demarrage de l'analyse - Session %s", session.session_id)

        for chemin in chemins:
            try:
                session.documents.append(self.analyser_fichier(chemin, type_force))
            except VeriPayError as e:
                logger.warning("Impossible d'analyser %s : %s", chemin, e)

        if not session.documents:
            raise AnalysisError("Aucun document n'a pu etre analyse.")

        session.duree_secondes = time.time() - debut
        timestamp = session.date_analyse.strftime("%Y%m%d_%H%M%S")
        self.config.preparer_repertoires()
        if format_rapport == "json":
            chemin_rapport = self.config.reports_dir / f"rapport_bulletins_{timestamp}.json"
            self.report_generator.generer_json(session, chemin_rapport)
        else:
            chemin_rapport = self.config.reports_dir / f"rapport_bulletins_{timestamp}.html"
            self.report_generator.generer_html(session, chemin_rapport)

        logger.info("Rapport genere : %s", chemin_rapport)
        logger.info("Analyse terminee en %.1f secondes.", session.duree_secondes)
        return chemin_rapport
