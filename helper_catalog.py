"""
Helper ingredient catalog.

Versioned reference table of nutrient-dense ingredients used to repair meals
whose candidates cannot reach the targets. Values are stored per 100 g in
data/helper_catalog.csv and exposed per gram.
"""

import logging
from functools import lru_cache
from types import MappingProxyType
from typing import Dict, List, Optional

import pandas as pd

from canonical import canonical_name, normalize_name
from config import CONFIG
from nutrition import Ingredient

logger = logging.getLogger(__name__)

VERSION_PREFIX = "# version:"


class HelperCatalog:
    """Read-only lookup over catalog entries, by display name or canonical key."""

    def __init__(self, entries: List[Ingredient], version: str = "unversioned"):
        self.version = version
        self._entries = tuple(entries)
        by_name: Dict[str, Ingredient] = {}
        by_key: Dict[str, Ingredient] = {}
        for ing in self._entries:
            by_name.setdefault(normalize_name(ing.name), ing)
            by_key.setdefault(canonical_name(ing.name), ing)
        self._by_name = MappingProxyType(by_name)
        self._by_key = MappingProxyType(by_key)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, name) -> bool:
        return self.get(name) is not None

    def get_exact(self, name) -> Optional[Ingredient]:
        """Entry whose normalized display name equals the given one."""
        return self._by_name.get(normalize_name(name))

    def get(self, name) -> Optional[Ingredient]:
        hit = self.get_exact(name)
        if hit is not None:
            return hit
        return self._by_key.get(canonical_name(name))


def read_version(csv_path: str) -> str:
    with open(csv_path, "r") as f:
        for line in f:
            if not line.startswith("#"):
                break
            if line.lower().startswith(VERSION_PREFIX):
                return line[len(VERSION_PREFIX):].strip()
    return "unversioned"


def load_catalog_frame(csv_path: str) -> pd.DataFrame:
    df = pd.read_csv(csv_path, comment="#", skipinitialspace=True)
    needed = CONFIG["required_columns"]
    missing = [c for c in needed if c not in df.columns]
    if missing:
        raise ValueError(f"Catalog CSV is missing columns: {missing}")
    df["name"] = df["name"].astype(str).str.strip()
    for c in ["calories", "protein", "carbs", "fat"]:
        df[c] = pd.to_numeric(df[c], errors="coerce").fillna(0)
    negative = df[(df[["calories", "protein", "carbs", "fat"]] < 0).any(axis=1)]
    if not negative.empty:
        raise ValueError(f"Catalog has negative macro values: {negative['name'].tolist()}")
    return df


@lru_cache(maxsize=8)
def _load(csv_path: str) -> HelperCatalog:
    df = load_catalog_frame(csv_path)
    entries = [
        Ingredient(row["name"], float(row["calories"]) / 100.0, float(row["protein"]) / 100.0,
                   float(row["carbs"]) / 100.0, float(row["fat"]) / 100.0)
        for row in df.to_dict("records")
    ]
    catalog = HelperCatalog(entries, version=read_version(csv_path))
    logger.info(f"Loaded helper catalog {catalog.version} ({len(catalog)} entries)")
    return catalog


def load_helper_catalog(csv_path: Optional[str] = None) -> HelperCatalog:
    return _load(csv_path or CONFIG["helper_catalog_csv"])
