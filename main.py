import logging
import os
from typing import List, Optional
from fastapi import Depends, FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from checkout import CheckoutState, EmptyCartError
from database import MongoStore, RemoteStore, create_document, get_db, settings
from schemas import CategoryFilter, OrderDraft, Product
from session import OutOfStockError, SessionRegistry, StorefrontSession

logging.basicConfig(level=settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

app = FastAPI(title="Parfum Store API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

_store = MongoStore()
_registry = SessionRegistry()


def get_store() -> RemoteStore:
    return _store


def get_registry() -> SessionRegistry:
    return _registry


def get_session(sid: str, registry: SessionRegistry = Depends(get_registry)) -> StorefrontSession:
    session = registry.get(sid)
    if session is None:
        raise HTTPException(status_code=404, detail="Session not found")
    return session


# Response models

class SessionOut(BaseModel):
    id: str


class CartLineOut(BaseModel):
    product: Product
    quantity: int
    line_total: float


class CartOut(BaseModel):
    items: List[CartLineOut]
    lines: int
    item_count: int
    total: float
    currency: str


class AddItemIn(BaseModel):
    product_id: str


class QuantityIn(BaseModel):
    quantity: int


class CheckoutOut(BaseModel):
    state: CheckoutState
    order_id: Optional[str] = None
    error: Optional[str] = None


def cart_to_client(session: StorefrontSession) -> CartOut:
    cart = session.cart
    return CartOut(
        items=[CartLineOut(product=i.product, quantity=i.quantity, line_total=i.line_total) for i in cart],
        lines=len(cart),
        item_count=cart.item_count(),
        total=cart.total(),
        currency=settings.CURRENCY,
    )


@app.get("/")
async def root():
    return {"message": "Parfum Store Backend Running"}

@app.get("/test")
async def test():
    try:
        db = await get_db()
        colls = []
        try:
            colls = await db.list_collection_names()
        except Exception:
            logger.exception("Listing collections failed")
        return {
            "backend": "✅ Running",
            "database": "✅ Available",
            "database_url": "✅ Set" if os.getenv("DATABASE_URL") else "❌ Not Set",
            "database_name": db.name,
            "collections": colls,
        }
    except Exception as e:
        return {"backend": "Error", "error": str(e)}

@app.post("/seed")
async def seed():
    db = await get_db()
    if await db["product"].count_documents({}) > 0:
        return {"seeded": False, "message": "Products already exist"}
    seed_products: List[dict] = [
        {
            "name": "Sauvage Eau de Parfum",
            "brand": "Dior",
            "category": "men",
            "price": 5200.0,
            "volume": 100,
            "concentration": "Eau de Parfum",
            "notes_top": "Bergamot, Pepper",
            "notes_heart": "Lavender, Sichuan Pepper",
            "notes_base": "Ambroxan, Vanilla",
            "in_stock": True,
            "popularity_score": 98,
        },
        {
            "name": "Chanel N°5",
            "brand": "Chanel",
            "category": "women",
            "price": 6100.0,
            "volume": 50,
            "concentration": "Eau de Parfum",
            "notes_top": "Aldehydes, Neroli",
            "notes_heart": "Jasmine, Rose",
            "notes_base": "Sandalwood, Vanilla",
            "in_stock": True,
            "popularity_score": 95,
        },
        {
            "name": "Santal 33",
            "brand": "Le Labo",
            "category": "unisex",
            "price": 9800.0,
            "volume": 100,
            "concentration": "Eau de Parfum",
            "notes_top": "Cardamom, Violet",
            "notes_heart": "Iris, Ambrox",
            "notes_base": "Sandalwood, Cedar, Leather",
            "in_stock": True,
            "popularity_score": 90,
        },
        {
            "name": "Black Opium",
            "brand": "Yves Saint Laurent",
            "category": "women",
            "price": 4700.0,
            "volume": 90,
            "concentration": "Eau de Parfum",
            "notes_top": "Pear, Pink Pepper",
            "notes_heart": "Coffee, Jasmine",
            "notes_base": "Vanilla, Patchouli",
            "in_stock": False,
            "popularity_score": 87,
        },
    ]
    for p in seed_products:
        await create_document("product", {"currency": settings.CURRENCY, **p})
    return {"seeded": True, "count": len(seed_products)}


# Session lifecycle

@app.post("/session", response_model=SessionOut)
async def start_session(
    registry: SessionRegistry = Depends(get_registry),
    store: RemoteStore = Depends(get_store),
):
    return SessionOut(id=registry.create(store).id)

@app.delete("/session/{sid}")
async def end_session(sid: str, registry: SessionRegistry = Depends(get_registry)):
    if not registry.end(sid):
        raise HTTPException(status_code=404, detail="Session not found")
    return {"ended": True}


# Catalog

@app.get("/session/{sid}/products", response_model=List[Product])
async def list_products(
    category: Optional[CategoryFilter] = Query(None),
    session: StorefrontSession = Depends(get_session),
):
    return await session.products(category)

@app.get("/session/{sid}/products/{product_id}", response_model=Product)
async def product_detail(product_id: str, session: StorefrontSession = Depends(get_session)):
    await session.products()
    product = session.catalog.get(product_id)
    if product is None:
        raise HTTPException(status_code=404, detail="Product not found")
    return product


# Cart

@app.get("/session/{sid}/cart", response_model=CartOut)
async def get_cart(session: StorefrontSession = Depends(get_session)):
    return cart_to_client(session)

@app.post("/session/{sid}/cart/items", response_model=CartOut)
async def add_item(payload: AddItemIn, session: StorefrontSession = Depends(get_session)):
    await session.products()
    product = session.catalog.get(payload.product_id)
    if product is None:
        raise HTTPException(status_code=404, detail="Product not found")
    try:
        session.add_to_cart(product)
    except OutOfStockError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return cart_to_client(session)

@app.put("/session/{sid}/cart/items/{product_id}", response_model=CartOut)
async def update_item(product_id: str, payload: QuantityIn, session: StorefrontSession = Depends(get_session)):
    session.cart.set_quantity(product_id, payload.quantity)
    return cart_to_client(session)

@app.delete("/session/{sid}/cart/items/{product_id}", response_model=CartOut)
async def remove_item(product_id: str, session: StorefrontSession = Depends(get_session)):
    session.cart.remove(product_id)
    return cart_to_client(session)

@app.delete("/session/{sid}/cart", response_model=CartOut)
async def clear_cart(session: StorefrontSession = Depends(get_session)):
    session.cart.clear()
    return cart_to_client(session)


# Checkout

def checkout_to_client(session: StorefrontSession) -> CheckoutOut:
    wf = session.checkout
    if wf is None:
        return CheckoutOut(state=CheckoutState.idle)
    return CheckoutOut(state=wf.state, order_id=wf.order_id, error=wf.error)

@app.post("/session/{sid}/checkout", response_model=CheckoutOut)
async def submit_order(draft: OrderDraft, session: StorefrontSession = Depends(get_session)):
    try:
        workflow = session.open_checkout()
        if workflow.busy:
            raise HTTPException(status_code=409, detail="Order submission already in progress")
        state = await workflow.submit(draft, session.cart)
    except EmptyCartError as e:
        raise HTTPException(status_code=409, detail=str(e))
    if state is CheckoutState.failed:
        raise HTTPException(status_code=502, detail=workflow.error)
    return CheckoutOut(state=state, order_id=workflow.order_id)

@app.get("/session/{sid}/checkout", response_model=CheckoutOut)
async def checkout_status(session: StorefrontSession = Depends(get_session)):
    return checkout_to_client(session)

@app.delete("/session/{sid}/checkout", response_model=CheckoutOut)
async def close_checkout(session: StorefrontSession = Depends(get_session)):
    session.close_checkout()
    return checkout_to_client(session)

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", 8000)))
