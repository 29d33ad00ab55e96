[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "httpsniff"
version = "1.0.0"
description = "Network packet sniffer with TCP stream reassembly and HTTP message decoding"
requires-python = ">=3.10"
dependencies = [
    "platformdirs",
]
keywords = ["sniffer", "packet capture", "tcp", "udp", "http", "network monitoring"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: X11 Applications",
    "Intended Audience :: System Administrators",
    "Intended Audience :: Developers",
    "Operating System :: POSIX :: Linux",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Networking :: Monitoring",
    "Topic :: Internet :: WWW/HTTP",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
httpsniff = "httpsniff.app:main"

[tool.hatch.build.targets.wheel]
packages = ["httpsniff"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
warn_redundant_casts = true
