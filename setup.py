"""Setup pour VeriPay."""

from setuptools import setup, find_packages

setup(
    name="veripay",
    version="1.0.0",
    description="Verification des bulletins de paie CCNT 66 et detection des erreurs de parametrage",
    author="AJ",
    python_requires=">=3.10",
    packages=find_packages(include=["veripay", "veripay.*"]),
    entry_points={
        "console_scripts": [
            "veripay=veripay.main:main",
        ],
    },
    install_requires=[
        "pydantic>=2.0",
        "pdfplumber>=0.10.0",
        "fastapi>=0.100.0",
        "python-multipart>=0.0.6",
    ],
    extras_require={
        "dev": [
            "pytest>=7.4.0",
            "pytest-cov>=4.1.0",
            "httpx>=0.24.0",
        ],
    },
)
