"""Shared fixtures for deck2pdf tests."""

from __future__ import annotations

import logging
import textwrap

import pytest


# ---------------------------------------------------------------------------
# Decks (strings) used across multiple test modules
# ---------------------------------------------------------------------------

MINIMAL_DECK = "# T\n**Версия:** 1.0\n---\n## Слайд 1: Intro\nHello\n---\n## Слайд 2: Done\n- a\n- b\n"

FULL_DECK = textwrap.dedent("""\
    # Platform Roadmap
    **Version:** 2.3
    **Date:** 2024-05-01
    **Phase 1: Discovery**
    ---
    ## Slide 1: Welcome
    A **bold** start with *style*.
    ---
    ## Slide 2: Plan
    ### Goals
    - ship the parser
    - ship the
      exporter

    1. first
    2. second
    ---
    ## Slide 3: Numbers
    | Name | Value |
    |------|-------|
    | a    | 1     |
    | b    | 2     |
    After the table.
    ---
    ## Slide 4: Code
    ```python
    print("hi")
    ```
    ---
    ## Slide 5: Diagrams
    ```plantuml
    @startuml
    Alice -> Bob: hello
    @enduml
    ```
    ```plantuml
    @ref:flows/login.puml
    ```
    """)


def numbered_deck(count: int) -> str:
    """A deck of *count* plain slides."""
    parts = ["# Numbered", "---"]
    for i in range(1, count + 1):
        parts += [f"## Slide {i}: Page {i}", f"Body {i}", "---"]
    return "\n".join(parts) + "\n"


@pytest.fixture
def tmp_deck(tmp_path):
    """Write FULL_DECK to a temp file and return its path."""
    p = tmp_path / "deck.md"
    p.write_text(FULL_DECK, encoding="utf-8")
    return p


@pytest.fixture
def diagrams_dir(tmp_path):
    """A diagrams directory with a referenced file and an include."""
    d = tmp_path / "diagrams"
    (d / "flows").mkdir(parents=True)
    (d / "flows" / "login.puml").write_text(
        "@startuml\n!include common/style.puml\nUser -> App: login\n@enduml\n",
        encoding="utf-8",
    )
    (d / "common").mkdir()
    (d / "common" / "style.puml").write_text("skinparam monochrome true\n", encoding="utf-8")
    return d


@pytest.fixture(autouse=True)
def reset_cli_logging():
    """Drop handlers the CLI attaches so they never outlive a test's capture."""
    yield
    logger = logging.getLogger("deck2pdf")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(logging.NOTSET)
