import logging
from typing import Optional

from fastapi import APIRouter, Depends, FastAPI, Query
from fastapi.middleware.cors import CORSMiddleware
from pymongo.database import Database

from auth import AuthContext, get_current_user, get_db, get_settings, require_admin
from catalog import ProductCatalog
from config import Settings, configure_logging
from database import ORDERS, PRODUCTS, USERS, connect, ensure_indexes
from errors import register_error_handlers
from orders import MAX_PAGE_SIZE, OrderManager
from schemas import (
    LoginRequest,
    OrderCreateRequest,
    OrderStatus,
    OrderUpdateRequest,
    ProductCreateRequest,
    ProductUpdateRequest,
    RegisterRequest,
    StatusUpdateRequest,
    UserCreateRequest,
    UserUpdateRequest,
)
from users import UserService

logger = logging.getLogger(__name__)


def get_catalog(db: Database = Depends(get_db)) -> ProductCatalog:
    return ProductCatalog(db)


def get_orders(db: Database = Depends(get_db)) -> OrderManager:
    return OrderManager(db)


def get_users(db: Database = Depends(get_db), settings: Settings = Depends(get_settings)) -> UserService:
    return UserService(db, settings)


# Service
service_router = APIRouter()


@service_router.get("/")
def root():
    return {"message": "Welcome to Data Vista API"}


@service_router.get("/test")
def test_database(db: Database = Depends(get_db), settings: Settings = Depends(get_settings)):
    response = {
        "backend": "Running",
        "database": "Not Available",
        "database_name": settings.database_name,
        "connection_status": "Not Connected",
        "collections": [],
    }
    try:
        response["collections"] = db.list_collection_names()[:10]
        response["database"] = "Connected & Working"
        response["connection_status"] = "Connected"
    except Exception as e:
        logger.warning("Database check failed: %s", e)
        response["database"] = f"Connected but Error: {str(e)[:50]}"
    return response


@service_router.get("/api/admin/stats")
def admin_stats(db: Database = Depends(get_db), orders: OrderManager = Depends(get_orders), admin: AuthContext = Depends(require_admin)):
    return {
        "users": db[USERS].count_documents({}),
        "products": db[PRODUCTS].count_documents({}),
        "orders": db[ORDERS].count_documents({}),
        **orders.summary(),
    }


# Users
users_router = APIRouter(prefix="/api/users", tags=["users"])


@users_router.post("/register", status_code=201)
def register(req: RegisterRequest, users: UserService = Depends(get_users)):
    return users.register(req)


@users_router.post("/login")
def login(req: LoginRequest, users: UserService = Depends(get_users)):
    return users.login(req)


@users_router.get("/me")
def me(user: AuthContext = Depends(get_current_user), users: UserService = Depends(get_users)):
    return users.me(user)


@users_router.get("")
def list_users(admin: AuthContext = Depends(require_admin), users: UserService = Depends(get_users)):
    return users.list()


@users_router.post("", status_code=201)
def create_user(req: UserCreateRequest, admin: AuthContext = Depends(require_admin), users: UserService = Depends(get_users)):
    return users.create(req)


@users_router.get("/{user_id}")
def get_user(user_id: str, user: AuthContext = Depends(get_current_user), users: UserService = Depends(get_users)):
    return users.get(user, user_id)


@users_router.put("/{user_id}")
def update_user(user_id: str, req: UserUpdateRequest, user: AuthContext = Depends(get_current_user), users: UserService = Depends(get_users)):
    return users.update(user, user_id, req)


@users_router.delete("/{user_id}")
def delete_user(user_id: str, user: AuthContext = Depends(get_current_user), users: UserService = Depends(get_users)):
    users.delete(user, user_id)
    return {"message": "User deleted successfully"}


# Products
products_router = APIRouter(prefix="/api/products", tags=["products"])


@products_router.get("")
def list_products(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=MAX_PAGE_SIZE),
    category: Optional[str] = None,
    search: Optional[str] = None,
    sortBy: str = "createdAt",
    sortOrder: str = "desc",
    catalog: ProductCatalog = Depends(get_catalog),
):
    return catalog.list(page=page, limit=limit, category=category, search=search, sort_by=sortBy, sort_order=sortOrder)


@products_router.get("/{product_id}")
def get_product(product_id: str, catalog: ProductCatalog = Depends(get_catalog)):
    return catalog.get(product_id)


@products_router.post("", status_code=201)
def create_product(req: ProductCreateRequest, admin: AuthContext = Depends(require_admin), catalog: ProductCatalog = Depends(get_catalog)):
    return catalog.create(req)


@products_router.put("/{product_id}")
def update_product(product_id: str, req: ProductUpdateRequest, admin: AuthContext = Depends(require_admin), catalog: ProductCatalog = Depends(get_catalog)):
    return catalog.update(product_id, req)


@products_router.delete("/{product_id}")
def delete_product(product_id: str, admin: AuthContext = Depends(require_admin), catalog: ProductCatalog = Depends(get_catalog)):
    catalog.delete(product_id)
    return {"message": "Product deleted successfully"}


# Orders
orders_router = APIRouter(prefix="/api/orders", tags=["orders"])


@orders_router.get("")
def list_orders(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=MAX_PAGE_SIZE),
    search: Optional[str] = None,
    status: Optional[OrderStatus] = None,
    sortBy: str = "createdAt",
    sortOrder: str = "desc",
    user: AuthContext = Depends(get_current_user),
    orders: OrderManager = Depends(get_orders),
):
    return orders.list(
        user,
        page=page,
        limit=limit,
        search=search,
        status=status.value if status else None,
        sort_by=sortBy,
        sort_order=sortOrder,
    )


@orders_router.get("/my-orders")
def my_orders(user: AuthContext = Depends(get_current_user), orders: OrderManager = Depends(get_orders)):
    return orders.list_mine(user)


@orders_router.post("", status_code=201)
def create_order(req: OrderCreateRequest, user: AuthContext = Depends(get_current_user), orders: OrderManager = Depends(get_orders)):
    return orders.create(user, req)


@orders_router.get("/{order_id}")
def get_order(order_id: str, user: AuthContext = Depends(get_current_user), orders: OrderManager = Depends(get_orders)):
    return orders.get(user, order_id)


@orders_router.put("/{order_id}")
def update_order(order_id: str, req: OrderUpdateRequest, user: AuthContext = Depends(get_current_user), orders: OrderManager = Depends(get_orders)):
    return orders.update(user, order_id, req)


@orders_router.patch("/{order_id}/status")
def update_order_status(order_id: str, req: StatusUpdateRequest, admin: AuthContext = Depends(require_admin), orders: OrderManager = Depends(get_orders)):
    return orders.update_status(admin, order_id, req.status)


@orders_router.delete("/{order_id}")
def delete_order(order_id: str, user: AuthContext = Depends(get_current_user), orders: OrderManager = Depends(get_orders)):
    orders.delete(user, order_id)
    return {"message": "Order deleted successfully"}


# App init
def create_app(settings: Settings, db: Optional[Database] = None) -> FastAPI:
    configure_logging(settings)
    if db is None:
        db = connect(settings)
    ensure_indexes(db)

    app = FastAPI(title="Data Vista API")
    app.state.settings = settings
    app.state.db = db

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.allowed_origin],
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )
    register_error_handlers(app, debug=settings.is_development)

    app.include_router(service_router)
    app.include_router(users_router)
    app.include_router(products_router)
    app.include_router(orders_router)
    return app


if __name__ == "__main__":
    import uvicorn
    settings = Settings.from_env()
    uvicorn.run(create_app(settings), host="0.0.0.0", port=settings.port)
