from __future__ import annotations

from pathlib import Path

import pytest
import yaml

from uicat.config import AppConfig

CATALOG = [
    {
        "id": "modal-dialog",
        "name": "Modal Dialog",
        "motionLevel": "minimal",
        "primitiveLibrary": "radix",
        "intent": "Overlay window that traps focus",
        "capabilities": ["focus trap", "escape to close"],
        "synonyms": ["popup", "lightbox"],
        "topics": ["overlay"],
        "source": {"url": "https://example.com/modal-dialog", "library": "acme-ui"},
        "dependencies": [{"name": "@radix-ui/react-dialog", "kind": "runtime"}],
    },
    {
        "id": "primary-button",
        "name": "Primary Button",
        "intent": "Call to action trigger",
        "capabilities": ["loading state"],
        "synonyms": ["cta"],
        "topics": ["forms"],
    },
    {
        "id": "animated-tabs",
        "name": "Animated Tabs",
        "motionLevel": "standard",
        "primitiveLibrary": "radix",
        "animationLibrary": "motion",
        "intent": "Switch between panels",
        "capabilities": ["keyboard navigation"],
        "synonyms": ["tab bar"],
        "topics": ["navigation"],
    },
    {
        "id": "hero-parallax",
        "name": "Hero Parallax",
        "motionLevel": "heavy",
        "animationLibrary": "framer-motion",
        "intent": "Landing page hero with depth",
        "capabilities": ["scroll linked"],
        "synonyms": ["banner"],
        "topics": ["marketing"],
    },
    {
        "id": "select-menu",
        "name": "Select Menu",
        "motionLevel": "minimal",
        "primitiveLibrary": "base-ui",
        "intent": "Pick one option from a list",
        "capabilities": ["typeahead"],
        "synonyms": ["dropdown", "combobox"],
        "topics": ["forms"],
    },
    {
        "id": "toast",
        "name": "Toast",
        "motionLevel": "minimal",
        "primitiveLibrary": "other",
        "animationLibrary": "motion",
    },
]


def make_config(tmp_path: Path) -> AppConfig:
    return AppConfig(
        db_path=tmp_path / "catalog.sqlite3",
        pid_path=tmp_path / "tools.pid",
    )


@pytest.fixture
def cfg(tmp_path: Path) -> AppConfig:
    return make_config(tmp_path)


@pytest.fixture
def catalog_file(tmp_path: Path) -> Path:
    path = tmp_path / "catalog.yaml"
    path.write_text(yaml.safe_dump({"components": CATALOG}, sort_keys=False))
    return path


@pytest.fixture
def catalog_data() -> list[dict]:
    return [dict(item) for item in CATALOG]
