"""Seed catalog used until (or instead of) a datastore read."""

from shopfront_lite.storage.models import Product

_SEED_ROWS: list[dict] = [
    {
        "id": "1",
        "name": "Standard Wool Overcoat",
        "price": 850,
        "floor_price": 600,
        "category": "Outerwear",
        "description": "A timeless silhouette crafted from Italian virgin wool. "
        "Sharp shoulders and a modern drape.",
        "tags": ["winter", "formal", "essential"],
    },
    {
        "id": "2",
        "name": "Heavyweight Boxy Tee",
        "price": 95,
        "floor_price": 45,
        "category": "Basics",
        "description": "Structured 300gsm cotton tee with a slightly cropped fit.",
        "tags": ["summer", "casual", "staple"],
    },
    {
        "id": "3",
        "name": "Nappa Leather Tote",
        "price": 1200,
        "floor_price": 900,
        "category": "Accessories",
        "description": "Supple lambskin leather with hand-painted edges, designed for frequent travel.",
        "tags": ["luxury", "leather", "travel"],
    },
    {
        "id": "4",
        "name": "Ceramic Sculpture Vase",
        "price": 320,
        "floor_price": 210,
        "category": "Home",
        "description": "Matte finish stoneware with a brutalist silhouette, hand-thrown in Copenhagen.",
        "tags": ["interior", "art", "minimalist"],
    },
    {
        "id": "5",
        "name": "Pleated Tapered Trousers",
        "price": 450,
        "floor_price": 300,
        "category": "Apparel",
        "description": "High-waisted wool trousers with sharp double pleats.",
        "tags": ["formal", "tailoring", "office"],
    },
    {
        "id": "6",
        "name": "Silver Signet Ring",
        "price": 210,
        "floor_price": 150,
        "category": "Accessories",
        "description": "Solid sterling silver, hand-polished to a mirror finish.",
        "tags": ["jewelry", "essential", "gift"],
    },
    {
        "id": "7",
        "name": "Merino Knit Polo",
        "price": 280,
        "floor_price": 180,
        "category": "Apparel",
        "description": "Ultra-fine merino wool in midnight navy. Breathable yet insulating.",
        "tags": ["knitwear", "casual", "luxury"],
    },
    {
        "id": "8",
        "name": "Architectural Table Lamp",
        "price": 650,
        "floor_price": 450,
        "category": "Home",
        "description": "Brushed aluminum and frosted glass with a soft ambient glow.",
        "tags": ["lighting", "modern", "decor"],
    },
    {
        "id": "9",
        "name": "Raw Denim Jacket",
        "price": 390,
        "floor_price": 250,
        "category": "Outerwear",
        "description": "Japanese selvedge denim that develops a unique patina with wear.",
        "tags": ["casual", "heritage", "rugged"],
    },
    {
        "id": "10",
        "name": "Chelsea Boots in Suede",
        "price": 520,
        "floor_price": 380,
        "category": "Footwear",
        "description": "Premium calf suede on a durable Goodyear welt.",
        "tags": ["shoes", "formal", "classic"],
    },
    {
        "id": "11",
        "name": "Cashmere Travel Blanket",
        "price": 890,
        "floor_price": 650,
        "category": "Home",
        "description": "Pure cashmere for long-haul journeys and quiet nights.",
        "tags": ["luxury", "home", "travel"],
    },
    {
        "id": "12",
        "name": "Linen Lounge Set",
        "price": 340,
        "floor_price": 240,
        "category": "Basics",
        "description": "Relaxed fit linen shirt and shorts for high summer.",
        "tags": ["summer", "casual", "relaxed"],
    },
]

DEFAULT_CATALOG: tuple[Product, ...] = tuple(Product.model_validate(row) for row in _SEED_ROWS)
