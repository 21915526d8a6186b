import os
import sys

import pandas as pd

# Add 'backend' folder to Python path
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

# Database models and setup
from models.product import Product
from models.users import User, ROLE_ADMIN, ROLE_FLORIST
from database import SessionLocal, init_db
from utils.hashing import get_password_hash

# Configuration
DATA_DIR = os.path.join(os.path.dirname(__file__), "data_source")
CATALOG_CSV = os.path.join(DATA_DIR, "products.csv")

SEED_USERS = [
    {"email": "admin@petalplace.local", "password": "admin123", "role": ROLE_ADMIN, "first_name": "Admin"},
    {"email": "florist@petalplace.local", "password": "florist123", "role": ROLE_FLORIST, "first_name": "Flora"},
]

# Fallback catalog used when no CSV is present in data_source/
DEFAULT_CATALOG = [
    ("RS-RED-12", "Classic Red Roses", "roses", 49.99, 59.99, 40, "A dozen long-stem red roses."),
    ("RS-PNK-12", "Blush Pink Roses", "roses", 47.99, None, 35, "Soft pink roses hand-tied with eucalyptus."),
    ("TL-MIX-10", "Spring Tulip Mix", "tulips", 34.50, None, 50, "Ten seasonal tulips in mixed colours."),
    ("LL-WHT-05", "White Lily Bouquet", "lilies", 42.00, None, 20, "Oriental lilies with fresh greenery."),
    ("SF-SUN-07", "Sunflower Sunshine", "sunflowers", 29.99, 34.99, 25, "Seven bright sunflowers."),
    ("OR-PHA-01", "Phalaenopsis Orchid", "plants", 39.00, None, 15, "Potted white orchid in a ceramic pot."),
    ("PN-CRM-06", "Peony Dream", "peonies", 64.00, None, 10, "Six cream peonies, available in season."),
    ("MX-WLD-01", "Wildflower Meadow", "mixed", 37.50, None, 30, "A loose, garden-style seasonal mix."),
]


def load_catalog() -> pd.DataFrame:
    """Reads the seed catalog from CSV, or builds it from the defaults."""
    if os.path.exists(CATALOG_CSV):
        df = pd.read_csv(CATALOG_CSV)
        print(f"Loaded {len(df)} products from {CATALOG_CSV}")
    else:
        df = pd.DataFrame(
            DEFAULT_CATALOG,
            columns=["sku", "name", "category", "price", "original_price", "stock_quantity", "description"],
        )
    df["sku"] = df["sku"].astype(str).str.strip().str.upper()
    df = df.drop_duplicates(subset=["sku"], keep="last")
    return df.where(pd.notna(df), None)


def seed_users(session):
    for data in SEED_USERS:
        if session.query(User).filter(User.email == data["email"]).first():
            continue
        session.add(User(
            email=data["email"],
            password_hash=get_password_hash(data["password"]),
            role=data["role"],
            first_name=data["first_name"],
        ))
        print(f"Created {data['role']} account {data['email']}")
    session.commit()


def seed_products(session):
    df = load_catalog()
    created, updated = 0, 0
    for row in df.to_dict(orient="records"):
        fields = {
            "name": row["name"],
            "category": row.get("category"),
            "price": float(row["price"]),
            "original_price": float(row["original_price"]) if row.get("original_price") is not None else None,
            "stock_quantity": int(row.get("stock_quantity") or 0),
            "description": row.get("description"),
        }
        existing = session.query(Product).filter(Product.sku == row["sku"]).first()
        if existing:
            for field, value in fields.items():
                setattr(existing, field, value)
            updated += 1
        else:
            session.add(Product(sku=row["sku"], is_active=True, **fields))
            created += 1
    session.commit()
    print(f"Products: {created} created, {updated} updated.")


def populate_database():
    """Main execution function to populate database."""
    init_db()
    session = SessionLocal()
    try:
        seed_users(session)
        seed_products(session)
    finally:
        session.close()


if __name__ == "__main__":
    populate_database()
