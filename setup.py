from setuptools import setup, find_packages

setup(
    name="directory-guard",
    version="0.1.0",
    packages=find_packages(include=["guard", "guard.*"]),
    python_requires=">=3.11",
    entry_points={
        "console_scripts": [
            "directory-guard=guard.app.main:run",
        ],
    },
    install_requires=[
        "fastapi>=0.110",
        "uvicorn[standard]>=0.27",
        "pydantic>=2.5",
        "pydantic-settings>=2.2",
        "sqlalchemy[asyncio]>=2.0",
        "asyncpg>=0.29",
        "aiosqlite>=0.19",
        "redis>=5.0",
        "typing_extensions>=4.8",
    ],
    extras_require={
        "test": [
            "pytest>=8.0",
            "pytest-asyncio>=0.23",
            "httpx>=0.27",
        ],
    },
)
