"""TrackMate — Tenant scope carried by every store operation."""
from dataclasses import dataclass


@dataclass(frozen=True)
class TenantScope:
    """
    Who is acting, and on behalf of which company.

    ``is_superuser`` bypasses the company filter; deciding who gets it is the
    caller's authorization concern.
    """

    company_id: int
    actor: str = "system"
    is_superuser: bool = False

    @classmethod
    def superuser(cls, company_id: int, actor: str = "superuser") -> "TenantScope":
        return cls(company_id=company_id, actor=actor, is_superuser=True)
