"""
Canonical template schemas and client column synonyms.

PICK and LOCATION are the two fixed record layouts every imported row maps
into. Field order matters: the column mapper claims headers in this order.
Synonyms cover the English and Dutch headings seen in client exports.
"""

# =============================================================================
# FIELD TYPES
# =============================================================================

STRING = "string"
NUMBER = "number"

# =============================================================================
# PICK TEMPLATE (7 required columns)
# =============================================================================

PICK_FIELD_TYPES = {
    "article": STRING,
    "articleDescription": STRING,
    "family": STRING,
    "pickFrequency": NUMBER,
    "location": STRING,
    "quantity": NUMBER,
    "uniqueArticles": NUMBER,
}

PICK_TEMPLATE_COLUMNS = tuple(PICK_FIELD_TYPES)

PICK_COLUMN_SYNONYMS = {
    "article": [
        "article",
        "artikelnummer",
        "artikel",
        "item",
        "item_number",
        "sku",
        "product_code",
        "product_id",
        "artikelnr",
        "art_nr",
    ],
    "articleDescription": [
        "articledescription",
        "description",
        "artikeloms",
        "omschrijving",
        "item_description",
        "product_description",
        "desc",
        "artikel_omschrijving",
    ],
    "family": [
        "family",
        "productgroup",
        "product_group",
        "category",
        "productgroep",
        "oms_productgroep",
        "oms productgroep 1",
        "group",
    ],
    "pickFrequency": [
        "pickfrequency",
        "frequency",
        "picks",
        "pick_frequency",
        "aantal_picks",
        "pickcount",
        "pick_count",
        "freq",
    ],
    "location": [
        "location",
        "locatie",
        "picklocatie",
        "pick_location",
        "loc",
        "warehouse_location",
        "slot",
    ],
    "quantity": ["quantity", "qty", "aantal", "hoeveelheid", "count", "amount", "volume"],
    "uniqueArticles": [
        "uniquearticles",
        "unique_articles",
        "aantal_artikelen",
        "article_count",
        "unique_items",
    ],
}

# =============================================================================
# LOCATION TEMPLATE (8 required columns)
# =============================================================================

LOCATION_FIELD_TYPES = {
    "location": STRING,
    "storageType": STRING,
    "locationLength": NUMBER,
    "locationWidth": NUMBER,
    "locationHeight": NUMBER,
    "capacityLayout": STRING,  # "0.25-0.25-0.25-0.25", kept verbatim
    "locationCategory": STRING,
    "bay": STRING,
}

LOCATION_TEMPLATE_COLUMNS = tuple(LOCATION_FIELD_TYPES)

LOCATION_COLUMN_SYNONYMS = {
    "location": ["location", "locatie", "loc", "warehouse_location", "slot", "position", "positie"],
    "storageType": [
        "storagetype",
        "storage_type",
        "type",
        "slottype",
        "slot_type",
        "slot type description",
        "locatietype",
    ],
    "locationLength": [
        "locationlength",
        "length",
        "lengte",
        "l",
        "location_length",
        "lengte st eenheid",
    ],
    "locationWidth": ["locationwidth", "width", "breedte", "w", "location_width", "breedte st eenheid"],
    "locationHeight": [
        "locationheight",
        "height",
        "hoogte",
        "h",
        "location_height",
        "hoogte st eenheid",
    ],
    "capacityLayout": ["capacitylayout", "capacity_layout", "layout", "capacity", "capaciteit"],
    "locationCategory": [
        "locationcategory",
        "category",
        "categorie",
        "location_category",
        "location class",
        "location class description",
        "cat",
    ],
    "bay": ["bay", "aisle", "gang", "area", "zone", "gebied"],
}
