"""
Portal client: the dashboard and registration form side of the portal,
talking to the API over HTTP.
"""

from dataclasses import dataclass
from typing import Optional

from app.config import Config, get_config

from app.client.api_client import PortalClient
from app.client.form import ApplicationForm
from app.client.list_cache import OptimisticListCache
from app.client.notifications import Notifier
from app.client.session import DashboardShell, SessionContext
from app.client.storage import LocalStorage
from app.client.views import view_for_route


@dataclass
class Portal:
    config: Config
    client: PortalClient
    storage: LocalStorage
    notifier: Notifier
    session: SessionContext
    shell: DashboardShell
    applications: OptimisticListCache

    def new_form(self, kind: str = "individual") -> ApplicationForm:
        return ApplicationForm(
            self.client,
            notifier=self.notifier,
            departments=self.config.portal.departments,
            max_file_size=self.config.portal.max_file_size,
            kind=kind,
        )

    def view(self, path: str):
        """Dashboard view for ``path``; None when the shell refuses the route."""
        if not self.shell.guard(path).allowed:
            return None
        return view_for_route(path, self.applications, self.config.portal.departments, session=self.session)

    async def aclose(self) -> None:
        self.applications.unmount()
        await self.client.aclose()


def build_portal(config: Optional[Config] = None, transport=None, storage: Optional[LocalStorage] = None) -> Portal:
    """Wire the client objects together and restore any persisted session."""
    config = config or get_config()
    client = PortalClient(
        config.client.api_base_url,
        timeout=config.client.request_timeout,
        transport=transport,
    )
    storage = storage or LocalStorage(config.client.storage_path)
    notifier = Notifier()
    session = SessionContext(client, storage, staff_roles=config.auth.staff_roles, notifier=notifier)
    session.restore()
    return Portal(
        config=config,
        client=client,
        storage=storage,
        notifier=notifier,
        session=session,
        shell=DashboardShell(session),
        applications=OptimisticListCache(client, storage, notifier),
    )


__all__ = ["Portal", "build_portal"]
