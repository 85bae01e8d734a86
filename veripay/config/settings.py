"""Configuration globale de l'application."""

from decimal import Decimal
from pathlib import Path
from dataclasses import dataclass, field


@dataclass
class AnalysisConfig:
    """Configuration analyse.

    Les seuils de detection sont des constantes empiriques, ajustees sur les
    bulletins de reference ; ils restent configurables.
    """
    # Ecart tolere entre valeur recalculee et valeur du bulletin
    tolerance_convention: Decimal = Decimal("0.005")
    # Ecart tolere sur les sommes internes du bulletin
    tolerance_coherence: Decimal = Decimal("0.02")
    # Ecart tolere sur le plafond detecte
    tolerance_plafond: Decimal = Decimal("0.01")
    # Residu RGDU minimal (EUR) en dessous duquel on ne conclut rien
    seuil_bruit_rgdu: Decimal = Decimal("3")
    # Une hypothese erronee doit expliquer le montant RGDU au moins 20% mieux
    ratio_hypothese_rgdu: Decimal = Decimal("0.8")
    max_file_size_mb: int = 10
    type_bulletin_defaut: str = "detaille"


@dataclass
class ReportConfig:
    """Configuration rapports."""
    format_defaut: str = "html"


@dataclass
class AppConfig:
    """Configuration principale de l'application."""
    base_dir: Path = field(default_factory=lambda: Path(__file__).parent.parent.parent)
    data_dir: Path = field(default=None)
    reports_dir: Path = field(default=None)

    analysis: AnalysisConfig = field(default_factory=AnalysisConfig)
    report: ReportConfig = field(default_factory=ReportConfig)

    def __post_init__(self):
        if self.data_dir is None:
            self.data_dir = self.base_dir / "data"
        if self.reports_dir is None:
            self.reports_dir = self.data_dir / "reports"

    def preparer_repertoires(self) -> None:
        """Cree les repertoires de sortie si necessaire."""
        for d in [self.data_dir, self.reports_dir]:
            d.mkdir(parents=True, exist_ok=True)
