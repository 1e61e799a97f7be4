from warehouse.api.routes import item_router, location_router, product_router, stock_router, task_router

__all__ = ["product_router", "location_router", "stock_router", "task_router", "item_router"]
