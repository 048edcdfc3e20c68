[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "ytdlpbot"
version = "0.1.0"
description = "Telegram bot that queues YouTube links and downloads them with yt-dlp"
requires-python = ">=3.10"
keywords = ["telegram", "bot", "youtube", "yt-dlp", "download", "queue"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: End Users/Desktop",
    "Natural Language :: Russian",
    "Operating System :: POSIX :: Linux",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Communications :: Chat",
    "Topic :: Multimedia :: Video",
]
dependencies = [
    "requests",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
ytdlpbot = "ytdlpbot.app:main"

[tool.hatch.build.targets.wheel]
packages = ["ytdlpbot"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
