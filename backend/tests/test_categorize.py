"""
Unit tests for product category guessing from item names.
"""
import pytest

from backend.core.categorize import guess_category
from backend.core.db.base import ProductCategory


class TestGuessCategory:
    @pytest.mark.parametrize("name,expected", [
        ("Rinderfilet", ProductCategory.FLEISCH),
        ("Lachsfilet frisch", ProductCategory.FLEISCH),
        ("Forelle geräuchert", ProductCategory.FISCH),
        ("Kartoffeln festkochend", ProductCategory.GEMUESE),
        ("Zitronen unbehandelt", ProductCategory.OBST),
        ("Schlagsahne 30%", ProductCategory.MILCHPRODUKTE),
        ("Mineralwasser 0,75l", ProductCategory.GETRAENKE),
        ("Meersalz grob", ProductCategory.GEWUERZE),
        ("Baguette hell", ProductCategory.BACKWAREN),
    ])
    def test_keyword_match(self, name, expected):
        assert guess_category(name) == expected

    def test_case_insensitive(self):
        assert guess_category("TOMATEN") == ProductCategory.GEMUESE

    def test_first_category_wins(self):
        # 'paprika' (gemuese) is checked before 'paprikapulver' (gewuerze)
        assert guess_category("Paprikapulver edelsüß") == ProductCategory.GEMUESE

    def test_unknown_falls_back_to_sonstiges(self):
        assert guess_category("Servietten weiß") == ProductCategory.SONSTIGES

    def test_empty_name(self):
        assert guess_category("") == ProductCategory.SONSTIGES
