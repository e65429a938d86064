"""Create database schema and seed sample catalog products for development."""
from __future__ import annotations

import asyncio
from datetime import datetime, timezone

from app.db.session import SessionLocal, engine
from app.models import Product
from app.models.base import Base

PRODUCTS = [
	{
		"id": "6f1c7d2e-3b8a-4c51-9e0f-2a7d4b6c8e10",
		"creator_id": "creator-ada",
		"title": "Lagos Street Photography Presets",
		"price": 5000,
		"product_type": "digital",
		"status": "approved",
	},
	{
		"id": "b3e9a1f4-7c2d-4e86-8a5b-1d0f9c3e7a24",
		"creator_id": "creator-tunde",
		"title": "Afrobeats Production Masterclass",
		"price": 25000,
		"product_type": "course",
		"status": "approved",
	},
]


async def create_schema() -> None:
	async with engine.begin() as conn:
		await conn.run_sync(Base.metadata.create_all)


async def seed_products() -> None:
	"""Insert or refresh the demo catalog."""

	async with SessionLocal() as session:
		async with session.begin():
			for product_data in PRODUCTS:
				product = await session.get(Product, product_data["id"])
				if product is None:
					product = Product(created_at=datetime.now(timezone.utc), **product_data)
				else:
					product.creator_id = product_data["creator_id"]
					product.title = product_data["title"]
					product.price = product_data["price"]
					product.product_type = product_data["product_type"]
					product.status = product_data["status"]
				session.add(product)


async def main() -> None:
	await create_schema()
	await seed_products()
	await engine.dispose()
	print("Database schema ensured and demo catalog seeded.")


if __name__ == "__main__":
	asyncio.run(main())
