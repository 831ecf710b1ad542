from setuptools import setup, find_packages

setup(
    name="patchwise",
    version="0.1.0",
    python_requires=">=3.10",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        "requests",
        "pyyaml",
        # Syntax-tree analysis (JavaScript / TSX / TypeScript)
        "tree-sitter>=0.22",
        "tree-sitter-javascript",
        "tree-sitter-typescript",
        # Token alignment and fuzzy token equality
        "rapidfuzz>=3.0",
    ],
    extras_require={
        "test": [
            "pytest",
        ],
    },
    entry_points={
        "console_scripts": [
            "patchwise=patchwise.cli:main",
        ],
    },
    author="Uday Kanth",
    description="Search/replace patch engine for LLM-authored code edits.",
)
