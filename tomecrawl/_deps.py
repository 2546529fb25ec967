"""Start-up check: the HTTP, progress and HTML-parsing stack must be usable before a crawl starts."""

import sys

# (import_name, pip_package_name)
REQUIRED = [
    ("httpx", "httpx"),
    ("bs4", "beautifulsoup4"),
    ("tqdm", "tqdm"),
]

INSTALL_CMD = "pip install tomecrawl"
INSTALL_CMD_SOURCE = "pip install -e ."


def missing_required() -> list[str]:
    """pip names of required packages that cannot be imported."""
    missing = []
    for mod_name, pip_name in REQUIRED:
        try:
            __import__(mod_name)
        except ImportError:
            missing.append(pip_name)
    return missing


def parser_available() -> bool:
    """True if bs4 has a tree builder registered for the parser Document uses."""
    from bs4.builder import builder_registry

    from tomecrawl.document import HTML_PARSER

    return builder_registry.lookup(HTML_PARSER) is not None


def check_required() -> bool:
    """Return True when everything needed is present; otherwise print what to install and exit 1."""
    missing = missing_required()
    if "beautifulsoup4" not in missing and not parser_available():
        missing.append("lxml")
    if not missing:
        return True
    print("Missing required dependencies: " + ", ".join(missing), file=sys.stderr)
    print("", file=sys.stderr)
    print("  Install from PyPI:", file=sys.stderr)
    print(f"    {INSTALL_CMD}", file=sys.stderr)
    print("", file=sys.stderr)
    print("  Or install from source (project directory):", file=sys.stderr)
    print(f"    {INSTALL_CMD_SOURCE}", file=sys.stderr)
    sys.exit(1)
