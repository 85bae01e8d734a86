"""VeriPay - verification des bulletins de paie CCNT 66."""

__version__ = "1.0.0"
