from setuptools import setup, find_packages

setup(
    name="hcloud-config",
    version="0.1.0",
    description=(
        "Compile a declarative hcloud.yml into terraform, docker-compose "
        "and nginx configuration for Hetzner Cloud."
    ),
    packages=find_packages(exclude=["tests", "tests.*"]),
    include_package_data=True,
    python_requires=">=3.10",
    install_requires=[
        "httpx>=0.24",
        "pydantic>=2.0",
        "PyYAML>=6.0",
        "rich>=13.0",
        "typer>=0.9",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
            "pytest-asyncio>=0.21",
            "respx>=0.20",
        ],
    },
    entry_points={
        "console_scripts": [
            "hcloud-config=hcloud_config.cli:main",
        ],
    },
)
