from setuptools import setup, find_packages

setup(
    name="notegraph",
    version="1.0.0",
    description="notegraph - Relationship graph engine for personal knowledge bases",
    author="Your Name",
    packages=find_packages(include=["notegraph", "notegraph.*"]),
    include_package_data=True,
    install_requires=[
        # Core data modeling and validation
        "pydantic>=2.0.0",

        # Environment variables
        "python-dotenv>=1.0.0",

        # Graph analysis (paths, centrality, metrics)
        "networkx>=3.0",
        # Array maths for the force step; scipy also backs networkx PageRank
        "numpy>=1.24.0",
        "scipy>=1.8.0",

        # CLI and rich output
        "typer>=0.9.0",
        "rich>=13.0.0",

        # YAML support for item snapshots and config
        "pyyaml>=6.0.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-asyncio>=0.21.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "notegraph = notegraph.app.cli:main",
        ],
    },
    python_requires=">=3.11",
    package_dir={"": "."},
)
