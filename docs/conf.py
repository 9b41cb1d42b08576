"""Sphinx configuration for the Telecom Contracts API documentation."""

import os
import sys
from datetime import datetime

sys.path.insert(0, os.path.abspath(".."))

# app.core refuses to load without a signing key
os.environ.setdefault("SECRET_KEY", "sphinx-build-placeholder-secret-key-000")

project = "Telecom Contracts API"
current_year = datetime.now().year
copyright = f"{current_year}, Telecom Plus S.A.S."
author = "Telecom Plus Team"

extensions = [
    "sphinx.ext.autodoc",
    "sphinx.ext.napoleon",
]

autodoc_member_order = "bysource"

templates_path = ["_templates"]
exclude_patterns: list[str] = ["_build"]

html_theme = "alabaster"

html_static_path = ["_static"]
