"""
Setup configuration for marketops package.
"""

from setuptools import setup, find_packages

setup(
    name="marketops",
    version="0.1.0",
    description="Marketing research dashboard over Supabase and generation webhooks",
    packages=find_packages(exclude=["tests", "tests.*"]),
    package_data={"marketops.core": ["section_manifests.yml"]},
    python_requires=">=3.9",
    install_requires=[
        "supabase>=2.0.0",
        "python-dotenv>=1.0.0",
        "pyyaml>=6.0",
        "pydantic>=2.0.0",
        "click>=8.1.0",
        "httpx>=0.25.0",
        "logfire[httpx]>=0.50.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.4.0",
            "pytest-asyncio>=0.23.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "marketops=marketops.cli.main:cli",
        ],
    },
)
