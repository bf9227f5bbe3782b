from setuptools import setup

setup(
    name="vpc-report",
    version="1.0.0",
    description="VPC topology inspection with Markdown reports and Mermaid diagrams",
    author="ECP SRE",
    py_modules=[
        "assembler",
        "auth",
        "cli",
        "decoder",
        "detail",
        "diagram",
        "inventory",
        "models",
        "pipeline",
        "report",
        "scanner",
        "settings",
    ],
    package_dir={"": "src"},
    install_requires=[
        "boto3>=1.28.0",
        "pyyaml>=6.0",
        "jmespath>=1.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "vpc-report=cli:main",
        ],
    },
    python_requires=">=3.11",
)
