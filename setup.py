"""
APIWizard - API Generation Workflow Engine
Install: pip install -e .
"""

from setuptools import setup, find_packages

with open("README.md", "r", encoding="utf-8") as f:
    long_description = f.read()

setup(
    name="apiwizard",
    version="1.0.0",
    author="Diegoproggramer",
    author_email="",
    description="⚡ Discover, configure, preview and generate REST endpoints for database services",
    long_description=long_description,
    long_description_content_type="text/markdown",
    url="https://github.com/Diegoproggramer/apiwizard",
    packages=find_packages(exclude=["tests", "tests.*"]),
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Topic :: Software Development :: Code Generators",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Framework :: AsyncIO",
    ],
    python_requires=">=3.9",
    install_requires=[
        "pydantic>=2.0.0",
        "pydantic-settings>=2.0.0",
        "httpx>=0.24.0",
        "pyyaml>=6.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0",
            "pytest-asyncio>=0.21.0",
            "fastapi>=0.100.0",
            "black>=23.0",
            "ruff>=0.1.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "apiwizard=apiwizard.cli:cli_main",
        ],
    },
    keywords="openapi, rest, api, generator, wizard, dreamfactory, python",
    project_urls={
        "Bug Reports": "https://github.com/Diegoproggramer/apiwizard/issues",
        "Source": "https://github.com/Diegoproggramer/apiwizard",
    },
)
