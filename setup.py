#!/usr/bin/env python3
from setuptools import setup
import re
import datetime

# Update build time in termleaf/__init__.py
def update_build_time():
    build_time = datetime.datetime.now().strftime("%Y-%m-%d %H:%M:%S")
    path = "termleaf/__init__.py"

    with open(path, "r") as f:
        content = f.read()

    pattern = r'__build_time__ = "[^"]*"'
    replacement = f'__build_time__ = "{build_time}"'
    new_content = re.sub(pattern, replacement, content)

    with open(path, "w") as f:
        f.write(new_content)

    print(f"Updated build time to: {build_time}")

# Update build time before building
update_build_time()

with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

setup(
    name="termleaf",
    version="0.3.0",
    author="termleaf contributors",
    author_email="",
    description="Document reflow and terminal rendering engine with a curses reader",
    long_description=long_description,
    long_description_content_type="text/markdown",
    url="https://github.com/termleaf/termleaf",
    packages=["termleaf"],
    classifiers=[
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.8",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "License :: OSI Approved :: MIT License",
        "Operating System :: POSIX :: Linux",
        "Environment :: Console :: Curses",
        "Topic :: Text Processing",
        "Topic :: Utilities",
        "Development Status :: 3 - Alpha",
    ],
    python_requires=">=3.8",
    install_requires=[
        "Pillow>=9.1.0",
        "pygments>=2.10.0",
        "requests>=2.25.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
            "pexpect>=4.8",
        ],
    },
    entry_points={
        "console_scripts": [
            "termleaf=termleaf.app:main",
        ],
    },
)
