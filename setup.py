from setuptools import setup, find_packages

setup(
    name="solana-portfolio-rebalancer",
    version="1.0.0",
    author="Solana Portfolio Rebalancer Team",
    description="Target-allocation rebalancing service for Solana wallets",
    package_dir={"": "src"},
    packages=find_packages(where="src"),
    package_data={
        "wallet_connector_base": ["py.typed"],
        "rebalance_engine": ["py.typed"],
        "solana_connector": ["py.typed"],
    },
    install_requires=[
        "pydantic==2.11.7",
        "PyYAML==6.0.2",
        "aiohttp==3.12.15",
        "redis==5.2.1",
        "fastapi==0.115.12",
        "uvicorn==0.34.2",
        "APScheduler==3.11.0",
        "dependency-injector>=4.41.0",
    ],
    extras_require={
        "test": [
            "pytest==8.3.5",
            "httpx==0.28.1",
        ],
    },
    entry_points={
        "console_scripts": [
            "solana-rebalancer=rebalance_service.main:run",
        ],
    },
    python_requires=">=3.11",
)
