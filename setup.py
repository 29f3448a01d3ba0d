"""Setup script for matrix_orchestrator package."""

from setuptools import setup, find_packages

setup(
    name="matrix-orchestrator",
    version="1.0.0",
    description="Start Container Apps Job executions for an environment x platform test matrix",
    author="Matrix Orchestrator maintainers",
    package_dir={"": "src"},
    packages=find_packages(where="src"),
    python_requires=">=3.10",
    install_requires=[
        "pandas>=1.3",
        "pyyaml>=5.4",
        "click>=8.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0",
            "pytest-cov>=4.0",
        ],
        "azure": [
            "azure-identity>=1.15",
            "azure-appconfiguration>=1.5",
            "azure-mgmt-appcontainers>=3.0",
            "aiohttp>=3.8",
        ],
    },
    entry_points={
        "console_scripts": [
            "matrix-orch=matrix_orchestrator.cli.main:cli",
        ],
    },
)
