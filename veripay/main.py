"""Point d'entree CLI pour VeriPay.

Usage :
    python -m veripay.main bulletins.pdf autres.txt [--format html|json] [--output DIR] [--type detaille|clarifie]
"""

import argparse
import logging
import sys
from decimal import Decimal
from pathlib import Path

from veripay.config.settings import AppConfig
from veripay.core.orchestrator import Orchestrator
from veripay.core.exceptions import VeriPayError
from veripay.config.constants import SUPPORTED_EXTENSIONS, TypeBulletin
from veripay.models.resultats import SessionAnalyse


BANNER = r"""
 __     __        _ ____
 \ \   / /__ _ __(_)  _ \ __ _ _   _
  \ \ / / _ \ '__| | |_) / _` | | | |
   \ V /  __/ |  | |  __/ (_| | |_| |
    \_/ \___|_|  |_|_|   \__,_|\__, |
                               |___/
  v1.0.0 - Verification des bulletins de paie CCNT 66
"""

logger = logging.getLogger("veripay")


def configurer_logging(verbose: bool = False) -> None:
    """Configure le logging de l'application."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)-7s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def creer_argument_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="veripay",
        description="Verification des bulletins de paie et detection des erreurs de parametrage 2026.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=f"Formats acceptes : {', '.join(SUPPORTED_EXTENSIONS)}",
    )
    parser.add_argument("fichiers", nargs="+", type=Path,
                        help="Bulletins a verifier (PDF ou texte deja extrait)")
    parser.add_argument("--format", "-f", choices=["html", "json"], default=None,
                        help="Format du rapport (defaut: celui de la configuration, html)")
    parser.add_argument("--output", "-o", type=Path, default=None,
                        help="Repertoire des rapports")
    parser.add_argument("--type", "-t", choices=[t.value for t in TypeBulletin], default=None,
                        help="Impose la mise en page au lieu de la detecter")
    parser.add_argument("--seuil-rgdu", type=Decimal, default=None,
                        help="Residu RGDU (EUR) sous lequel aucune anomalie n'est signalee")
    parser.add_argument("--verbose", "-v", action="store_true", help="Mode debug")
    return parser


def fichiers_acceptes(chemins: list[Path]) -> list[Path]:
    """Ecarte les fichiers absents ou dont l'extension n'est pas lue."""
    retenus = []
    for chemin in chemins:
        if not chemin.exists():
            logger.error("Fichier introuvable : %s", chemin)
        elif chemin.suffix.lower() not in SUPPORTED_EXTENSIONS:
            logger.error("Format non supporte : %s (%s)", chemin.name, chemin.suffix)
        else:
            retenus.append(chemin)
    return retenus


def afficher_synthese(session: SessionAnalyse, chemin_rapport: Path) -> None:
    print(f"\n{'='*60}")
    print(f"  {session.nombre_bulletins} bulletin(s), {session.nombre_invalides} avec erreur de parametrage")
    for document in session.documents:
        for bulletin in document.analyse.bulletins:
            if bulletin.valide:
                continue
            types = ", ".join(e.type.value for e in bulletin.erreurs)
            print(f"  - {document.nom_fichier} | {bulletin.salarie} ({bulletin.periode}) : {types}")
    print(f"  Rapport : {chemin_rapport}")
    print(f"{'='*60}\n")


def main(argv=None) -> int:
    """Point d'entree principal."""
    print(BANNER)
    args = creer_argument_parser().parse_args(argv)
    configurer_logging(args.verbose)

    fichiers = fichiers_acceptes(args.fichiers)
    if not fichiers:
        logger.error("Aucun fichier a analyser.")
        return 1

    config = AppConfig()
    if args.output:
        config.reports_dir = args.output
    if args.seuil_rgdu is not None:
        config.analysis.seuil_bruit_rgdu = args.seuil_rgdu

    orchestrator = Orchestrator(config)
    try:
        chemin_rapport = orchestrator.analyser_documents(
            fichiers, format_rapport=args.format, type_force=args.type)
    except VeriPayError as e:
        logger.error("Erreur d'analyse : %s", e)
        return 1
    except Exception as e:
        logger.exception("Erreur inattendue : %s", e)
        return 2

    afficher_synthese(orchestrator.session, chemin_rapport)
    return 0


if __name__ == "__main__":
    sys.exit(main())
