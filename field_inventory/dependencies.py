from collections.abc import Iterator

from fastapi import Request

from field_inventory.services.site_workspace import SiteWorkspace


def get_workspace(request: Request) -> Iterator[SiteWorkspace]:
    registry = request.app.state.workspaces
    with registry.checkout(request.state.workspace_key) as workspace:
        yield workspace
