from setuptools import find_packages, setup

setup(
    name="flightcheck",
    version="0.1.0",
    packages=find_packages(
        include=[
            "fc_common",
            "fc_common.*",
            "fc_config",
            "fc_config.*",
            "fc_hooks",
            "fc_hooks.*",
            "fc_bus",
            "fc_bus.*",
            "fc_worker",
            "fc_worker.*",
            "fc_admin",
            "fc_admin.*",
        ]
    ),
    install_requires=[
        "requests>=2.31.0",
        "fastapi>=0.104.0",
        "uvicorn>=0.24.0",
        "click>=8.1.0",
        "pyyaml>=6.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.4.0",
            "pytest-asyncio>=0.21.0",
            "pytest-xdist>=3.3.0",
            "httpx>=0.24.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "flightcheck=fc_worker.__main__:main",
            "flightcheck-broker=fc_bus.__main__:main",
            "flightcheck-admin=fc_admin.cli:cli",
        ],
    },
    python_requires=">=3.11",
)
