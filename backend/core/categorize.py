"""
Product Categorization

Guesses a product category from an item name when a delivery note
introduces a product the inventory has not seen before.

Categories are checked in order; the first whose terms appear in the
lower-cased name wins. Names matching nothing fall back to "sonstiges".
"""

from typing import Dict, Tuple

from .db.base import ProductCategory

# Checked top to bottom ("Paprikapulver" lands in gemuese)
CATEGORY_TERMS: Dict[ProductCategory, Tuple[str, ...]] = {
    ProductCategory.FLEISCH: (
        'rind', 'schwein', 'hähnchen', 'huhn', 'pute', 'lamm', 'kalb',
        'wurst', 'schinken', 'speck', 'filet', 'steak', 'hack',
    ),
    ProductCategory.FISCH: (
        'lachs', 'fisch', 'dorade', 'forelle', 'thunfisch', 'garnele',
        'shrimp', 'muschel', 'tintenfisch', 'kabeljau',
    ),
    ProductCategory.GEMUESE: (
        'kartoffel', 'tomate', 'zwiebel', 'paprika', 'gurke', 'salat',
        'möhre', 'karotte', 'kohl', 'rotkohl', 'spinat', 'zucchini',
        'aubergine', 'brokkoli', 'blumenkohl', 'lauch', 'sellerie',
        'champignon', 'pilz',
    ),
    ProductCategory.OBST: (
        'apfel', 'birne', 'banane', 'orange', 'zitrone', 'lime', 'erdbeere',
        'himbeere', 'traube', 'melone', 'ananas', 'mango', 'kiwi',
    ),
    ProductCategory.MILCHPRODUKTE: (
        'milch', 'sahne', 'butter', 'käse', 'joghurt', 'quark', 'parmesan',
        'mozzarella', 'gouda', 'emmentaler', 'schmand', 'créme',
    ),
    ProductCategory.GETRAENKE: (
        'wasser', 'cola', 'saft', 'bier', 'wein', 'schnaps', 'likör',
        'kaffee', 'tee', 'limonade', 'sprite', 'fanta',
    ),
    ProductCategory.GEWUERZE: (
        'salz', 'pfeffer', 'öl', 'olivenöl', 'essig', 'zucker', 'mehl',
        'gewürz', 'oregano', 'basilikum', 'thymian', 'rosmarin', 'curry',
        'paprikapulver', 'zimt', 'muskat',
    ),
    ProductCategory.BACKWAREN: (
        'brot', 'brötchen', 'baguette', 'ciabatta', 'croissant', 'kuchen',
        'torte', 'gebäck',
    ),
}


def guess_category(name: str) -> ProductCategory:
    """
    Guess the category of a product from its name.

    Examples:
        'Rinderfilet' → fleisch
        'Mineralwasser 0,75l' → getraenke
        'Servietten' → sonstiges
    """
    name_lower = str(name or '').lower()

    for category, terms in CATEGORY_TERMS.items():
        if any(term in name_lower for term in terms):
            return category

    return ProductCategory.SONSTIGES
