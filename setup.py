from setuptools import setup, find_namespace_packages

setup(
    name="espaze-node-deployer",
    version="0.1.0",
    packages=find_namespace_packages(include=["app*"]),
    install_requires=[
        "fastapi>=0.104.1",
        "uvicorn>=0.24.0",
        "sqlalchemy>=2.0.23",
        "alembic>=1.13.1",
        "pydantic>=2.5.0",
        "pydantic-settings>=2.1.0",
        "python-dotenv>=1.0.0",
        "psycopg2-binary>=2.9.9",
        "kubernetes>=28.1.0",
        "requests>=2.31.0",
        "python-jose[cryptography]>=3.3.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.4.3",
            "httpx>=0.25.2",
        ],
    },
    python_requires=">=3.11",
)
