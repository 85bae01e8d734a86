"""Exceptions personnalisees pour VeriPay."""


class VeriPayError(Exception):
    """Exception de base."""


class ParseError(VeriPayError):
    """Erreur lors du parsing d'un bulletin."""


class ExtractionError(ParseError):
    """Echec de l'extraction du texte d'un PDF."""


class UnsupportedFormatError(ParseError):
    """Format de fichier ou de bulletin non supporte."""


class AnalysisError(VeriPayError):
    """Erreur lors de l'analyse."""


class ReportError(VeriPayError):
    """Erreur lors de la generation du rapport."""


class ConfigError(VeriPayError):
    """Erreur de configuration."""
