"""
Setup configuration for API Sentinel package.
"""

from setuptools import setup, find_packages

setup(
    name="apisentinel",
    version="1.0.0",
    description="Adversarial probe scanner for HTTP APIs",
    author="API Sentinel Team",
    python_requires=">=3.11",
    packages=find_packages(where="src"),
    package_dir={"apisentinel": "src/apisentinel"},
    py_modules=["main"],
    install_requires=[
        "aiohttp>=3.9.1",
        "structlog>=23.2.0",
        "click>=8.1.7",
        "rich>=13.7.0",
        "pydantic>=2.5.2",
        "PyYAML>=6.0.1",
    ],
    extras_require={
        "dev": [
            "pytest>=7.4.3",
            "pytest-asyncio>=0.21.1",
            "pytest-cov>=4.1.0",
            "black>=23.12.1",
            "flake8>=6.1.0",
            "mypy>=1.7.1",
        ],
        "test": [
            "pytest>=7.4.3",
            "pytest-asyncio>=0.21.1",
            "pytest-cov>=4.1.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "apisentinel=main:cli",
        ],
    },
)
