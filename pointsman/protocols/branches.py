"""Branch directory protocol for scoping global rewards."""

from typing import Protocol, runtime_checkable


@runtime_checkable
class BranchDirectory(Protocol):
    """
    Protocol for resolving which company a branch belongs to.

    Global rewards are offered only at branches of their own company.
    Without a configured backend every branch is treated as part of one
    company and sees every global reward.

    Configuration in settings.py:
        POINTSMAN = {
            "BRANCH_DIRECTORY_BACKEND": "myproject.loyalty.StoreBranchDirectory",
        }
    """

    def get_company_ref(self, branch_ref: str) -> str | None:
        """
        Company of a branch.

        Args:
            branch_ref: Branch reference

        Returns:
            Company reference, or None if the branch is unknown
        """
        ...
