"""
데모 데이터 시드 스크립트
스토어 1곳, 상품 3개, 포인트 1,000 을 가진 사용자 1명
"""

import sys
import os

sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from shopapi.database.connection import SessionLocal
from shopapi.models import Product, Store, User
from shopapi.repositories.user_repository import UserRepository

DEMO_EMAIL = "demo@example.com"

DEMO_PRODUCTS = [
    ("Basic Tee", 19_000),
    ("Denim Jacket", 89_000),
    ("Canvas Sneakers", 59_000),
]


def seed_demo_data():
    """데모 스토어/상품/사용자 시드 (이미 있으면 건너뜀)"""
    db = SessionLocal()
    try:
        if UserRepository(db).get_by_email(DEMO_EMAIL):
            print(f"Demo user already exists: {DEMO_EMAIL}")
            return

        store = Store(name="Demo Store")
        db.add(store)
        db.flush()

        for name, price in DEMO_PRODUCTS:
            db.add(Product(store_id=store.id, name=name, price=price))

        db.add(User(email=DEMO_EMAIL, nickname="demo", points=1000))
        db.commit()
        print(f"✅ Demo data created: store={store.id}, products={len(DEMO_PRODUCTS)}")

    except Exception as e:
        db.rollback()
        print(f"❌ Demo data seed failed: {str(e)}")
        raise
    finally:
        db.close()


if __name__ == "__main__":
    seed_demo_data()
