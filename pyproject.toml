[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "metricscraper"
version = "0.1.0"
description = "Scrape Prometheus-style metrics from cAdvisor or services and forward them to OpenTSDB"
requires-python = ">=3.10"
keywords = ["metrics", "cadvisor", "opentsdb", "kubernetes", "scraper", "monitoring"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Monitoring",
]
dependencies = [
    "dnspython",
    "requests",
    "pyyaml",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
metric-scraper = "metricscraper.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["metricscraper"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
