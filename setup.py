"""
Schema Tools - Setup Configuration
"""
from setuptools import setup, find_packages

# Core requirements
core_requirements = [
    "pydantic>=2.0.0",
    "pyyaml>=6.0.0",
    "sqlparse>=0.4.0",
]

# Development requirements
dev_requirements = [
    "pytest>=7.0.0",
    "pytest-cov>=4.0.0",
]

setup(
    name="schema-tools",
    version="1.0.0",
    author="Schema Tools Contributors",
    author_email="",
    description="Schema analysis and soft-delete T-SQL generation for SQL Server",
    long_description=(
        "Analyses SQL Server table descriptors for soft-delete, temporal, "
        "append-only and polymorphic patterns, validates them, and generates "
        "cascade/restrict triggers, a purge procedure and active-record views."
    ),
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Database",
        "Topic :: Software Development :: Code Generators",
    ],
    python_requires=">=3.9",
    install_requires=core_requirements,
    extras_require={
        "dev": dev_requirements,
    },
    entry_points={
        "console_scripts": [
            "schema-tools=schema_tools.cli:main",
        ],
    },
    keywords=[
        "sql",
        "sql-server",
        "t-sql",
        "soft-delete",
        "temporal-tables",
        "code-generation",
    ],
)
