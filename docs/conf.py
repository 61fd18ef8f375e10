"""Sphinx configuration for the LLM Capability Probe docs."""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

# -- Project information -----------------------------------------------------

project = "LLM Capability Probe"
copyright = "2026, LLM Capability Probe contributors"
author = "LLM Capability Probe contributors"
release = "0.1.0"

# -- General configuration ---------------------------------------------------

extensions = [
    "myst_parser",
    "autoapi.extension",
    "sphinx.ext.napoleon",
    "sphinx.ext.viewcode",
    "sphinx_autodoc_typehints",
]

exclude_patterns = ["_build", "Thumbs.db", ".DS_Store"]

myst_enable_extensions = ["colon_fence", "deflist"]

# -- AutoAPI configuration --------------------------------------------------

autoapi_type = "python"
autoapi_dirs = ["../src/llm_capability_probe"]
autoapi_root = "api"
autoapi_add_toctree_entry = True
autoapi_python_class_content = "class"
autoapi_member_order = "groupwise"
autoapi_options = ["members", "show-inheritance", "show-module-summary"]
autoapi_keep_files = False
autoapi_ignore = ["*/__pycache__/*"]


def autoapi_skip_member(app, what, name, obj, skip, options):  # type: ignore[no-untyped-def]
    """Hide private members and pydantic field attributes."""
    if name.startswith("_"):
        return True
    if what == "attribute" and hasattr(obj, "__annotations__"):
        return True
    return skip


def setup(app):  # type: ignore[no-untyped-def]
    app.connect("autoapi-skip-member", autoapi_skip_member)


# -- HTML output -------------------------------------------------------------

html_theme = "sphinx_rtd_theme"
html_theme_options = {"navigation_depth": 4, "collapse_navigation": False}
html_title = f"{project} v{release}"

# -- Napoleon (Google-style docstrings) ----------------------------------------

napoleon_google_docstring = True
napoleon_numpy_docstring = False
napoleon_include_init_with_doc = False
napoleon_use_param = True
napoleon_use_rtype = True

typehints_fully_qualified = False
always_document_param_types = True
