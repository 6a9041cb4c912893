import logging

from fastapi import FastAPI
from fastapi.responses import PlainTextResponse, RedirectResponse

from field_inventory.config import settings
from field_inventory.routers import inventory
from field_inventory.security.workspaces import WorkspaceRegistry, install_workspace_cookie_middleware
from field_inventory.services.inventory_store import InventoryStore
from field_inventory.services.site_workspace import SiteWorkspace
from field_inventory.services.store_factory import get_inventory_store

logging.basicConfig(level=settings.log_level.upper(), format='%(asctime)s %(levelname)s %(name)s: %(message)s')


def create_app(store: InventoryStore | None = None) -> FastAPI:
    app = FastAPI(title='Field Inventory')

    inventory_store = store if store is not None else get_inventory_store()
    app.state.inventory_store = inventory_store
    app.state.workspaces = WorkspaceRegistry(lambda: SiteWorkspace(inventory_store))

    install_workspace_cookie_middleware(app)
    app.include_router(inventory.router)

    @app.get('/')
    def root():
        return RedirectResponse('/inventory/view', status_code=303)

    @app.get('/robots.txt', response_class=PlainTextResponse)
    def robots_txt() -> str:
        return 'User-agent: *\nDisallow: /\n'

    return app


app = create_app()
