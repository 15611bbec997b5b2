"""
Deadswitch Liveness Client Setup
"""

from setuptools import setup, find_packages

with open("README.md", "r", encoding="utf-8") as f:
    long_description = f.read() if f else ""

setup(
    name="deadswitch-liveness",
    version="0.3.0",
    author="Deadswitch Team",
    description="Liveness, custody address and session core for a dead-man's-switch inheritance client",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.10",
    install_requires=[
        "pycryptodome>=3.19.0",
        "ntplib>=0.4.0",
        "httpx>=0.25.0",
        "aiosqlite>=0.19.0",
        "base58>=2.1.0",
        "bech32>=1.2.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.4.0",
            "pytest-asyncio>=0.21.0",
            "pytest-timeout>=2.2.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "deadswitch=deadswitch.app.cli:main",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Security :: Cryptography",
        "Topic :: Office/Business :: Financial",
    ],
    keywords="bitcoin dead-man-switch inheritance heartbeat liveness bech32",
)
