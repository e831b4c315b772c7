# setup.py
from setuptools import setup, find_packages

setup(
    name="html-cache",
    version="0.1.0",
    description="Пре-рендер страниц из sitemap через headless Chromium с кэшированием HTML",
    packages=find_packages(exclude=("tests", "tests.*")),
    install_requires=[
        "aiohttp>=3.9",
        "aiomysql>=0.2",
        "aiosqlite>=0.19",
        "click>=8.1",
        "lxml>=5.0",
        "playwright>=1.40",
        "pydantic>=2.5",
        "pymongo>=4.13",
        "PyYAML>=6.0",
        "redis>=5.0.1",
    ],
    extras_require={
        "test": [
            "pytest>=7.4",
            "pytest-asyncio>=0.23",
        ],
    },
    entry_points={
        "console_scripts": [
            "html-cache=html_cache.cli:cli",
        ],
    },
    python_requires=">=3.11",
)
