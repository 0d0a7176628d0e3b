from setuptools import setup, find_packages

setup(
    name="netcharge_pro",
    version="1.0.0",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.9",
    install_requires=[
        "fastapi",
        "uvicorn",
        "python-jose[cryptography]",
        "passlib[bcrypt]",
        "bcrypt>=4.0,<4.1",
        "sqlalchemy[asyncio]>=2.0",
        "asyncpg",
        "pydantic[email]>=2.0",
        "reportlab",
        "apscheduler>=3.10,<4"
    ],
    extras_require={
        "test": [
            "pytest",
            "pytest-asyncio",
            "httpx",
            "aiosqlite"
        ]
    },
)
