"""
Dashboard views over the optimistic list cache.

Views hold no records of their own; every read goes through the cache so an
optimistic change or rollback shows up on the next render.
"""

from typing import Any, Dict, List, Optional

from app.schemas.applications import ApplicationStatus
from app.utils.datetime_utils import parse_datetime_safe

from app.client.list_cache import OptimisticListCache


def filter_applications(
    records: List[Any],
    search: str = "",
    department: str = "all",
    status: Optional[ApplicationStatus] = None,
) -> List[Any]:
    """Case-insensitive search over name and email, plus category and status filters."""
    needle = (search or "").strip().lower()
    status = ApplicationStatus(status) if status else None
    result = []
    for record in records:
        if needle and needle not in record.display_name.lower() and needle not in record.email.lower():
            continue
        if department and department != "all" and record.category != department:
            continue
        if status and record.status != status:
            continue
        result.append(record)
    return result


def _created_ts(record: Any) -> float:
    if not record.created_at:
        return 0.0
    try:
        return parse_datetime_safe(record.created_at).timestamp()
    except ValueError:
        return 0.0


class CandidatesView:
    """Candidate table, optionally scoped to one status or one department"""

    def __init__(
        self,
        cache: OptimisticListCache,
        status: Optional[ApplicationStatus] = None,
        department: Optional[str] = None,
    ):
        self.cache = cache
        self.status = ApplicationStatus(status) if status else None
        self.department = department
        self.search = ""
        self.department_filter = department or "all"

    @property
    def title(self) -> str:
        if self.status:
            return f"{self.status.value} Candidates"
        if self.department:
            return f"{self.department} Department"
        return "All Candidates"

    @property
    def rows(self) -> List[Any]:
        return filter_applications(
            self.cache.records,
            search=self.search,
            department=self.department_filter,
            status=self.status,
        )

    def can_act(self, record_id: str) -> bool:
        """False while a change for this record is still in flight."""
        return self.cache.get(record_id) is not None and not self.cache.is_pending(record_id)

    async def verify(self, record_id: str) -> bool:
        return await self.cache.set_status(record_id, ApplicationStatus.VERIFIED)

    async def reject(self, record_id: str) -> bool:
        return await self.cache.set_status(record_id, ApplicationStatus.REJECTED)

    async def delete(self, record_id: str) -> bool:
        return await self.cache.remove(record_id)

    def view(self, record_id: str) -> Optional[Dict[str, Any]]:
        """Detail panel data for one record, or None if it is not displayed."""
        record = self.cache.get(record_id)
        if record is None:
            return None
        detail = record.model_dump(mode="json")
        detail["display_name"] = record.display_name
        detail["category"] = record.category
        return detail


class DashboardOverview:
    def __init__(self, cache: OptimisticListCache, departments: List[str], recent_limit: int = 5):
        self.cache = cache
        self.departments = list(departments)
        self.recent_limit = recent_limit

    @property
    def stats(self) -> Dict[str, int]:
        records = self.cache.records
        return {
            "total": len(records),
            "pending": sum(1 for r in records if r.status == ApplicationStatus.PENDING),
            "verified": sum(1 for r in records if r.status == ApplicationStatus.VERIFIED),
            "rejected": sum(1 for r in records if r.status == ApplicationStatus.REJECTED),
        }

    @property
    def department_breakdown(self) -> Dict[str, int]:
        counts = {d: 0 for d in self.departments}
        for r in self.cache.records:
            if r.category in counts:
                counts[r.category] += 1
        return counts

    @property
    def recent(self) -> List[Any]:
        return sorted(self.cache.records, key=_created_ts, reverse=True)[: self.recent_limit]


class DepartmentsView:
    def __init__(self, cache: OptimisticListCache, departments: List[str]):
        self.sections = [CandidatesView(cache, department=d) for d in departments]

    def section(self, department: str) -> Optional[CandidatesView]:
        for view in self.sections:
            if view.department == department:
                return view
        return None


class SettingsView:
    """Account info for the signed-in staff user"""

    title = "Settings"

    def __init__(self, session):
        self.session = session

    @property
    def email(self) -> Optional[str]:
        return (self.session.user or {}).get("email")

    @property
    def roles(self) -> List[str]:
        role = (self.session.user or {}).get("role")
        return [role] if role else []

    @property
    def roles_label(self) -> str:
        return ", ".join(self.roles) if self.roles else "No roles assigned"


def view_for_route(path: str, cache: OptimisticListCache, departments: List[str], session=None):
    """Dashboard view rendered at ``path`` (None for unknown routes)."""
    routes = {
        "/dashboard": lambda: DashboardOverview(cache, departments),
        "/dashboard/candidates": lambda: CandidatesView(cache),
        "/dashboard/departments": lambda: DepartmentsView(cache, departments),
        "/dashboard/pending": lambda: CandidatesView(cache, status=ApplicationStatus.PENDING),
        "/dashboard/verified": lambda: CandidatesView(cache, status=ApplicationStatus.VERIFIED),
    }
    if session is not None:
        routes["/dashboard/settings"] = lambda: SettingsView(session)
    factory = routes.get(path.rstrip("/") or "/")
    return factory() if factory else None
