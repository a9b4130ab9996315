"""
REST Backend Client

Talks to the finance backend over HTTP/JSON with a requests.Session.

Responsibilities:
- Bearer authentication on every request
- JSON <-> model conversion (camelCase wire format)
- Mapping every failed call to NetworkFailure (404 to NotFoundError)

There is no retry or backoff: a failed call is reported once and the
caller abandons the operation.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

import requests
import structlog

from fintrack.config import BackendSettings, get_settings
from fintrack.models.account import Account, AccountBalance
from fintrack.models.group import Group, GroupMember, GroupRole, RoleDraft, User
from fintrack.services.backend.interface import (
    BackendInterface,
    NetworkFailure,
    NotFoundError,
)


class RestBackendClient(BackendInterface):
    """
    HTTP implementation of the backend interfaces.

    One instance per session; the token can be swapped with set_token()
    when the session is refreshed.
    """

    def __init__(
        self,
        settings: Optional[BackendSettings] = None,
        session: Optional[requests.Session] = None,
    ):
        self._settings = settings or get_settings().backend
        self._session = session or requests.Session()
        self._token = self._settings.api_token
        self._logger = structlog.get_logger(__name__)

    def set_token(self, token: Optional[str]) -> None:
        self._token = token

    # ─── HTTP primitives ───

    def _get_headers(self) -> dict:
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    def _request(self, method: str, path: str, **kwargs) -> Any:
        url = f"{self._settings.base_url}{path}"
        try:
            resp = self._session.request(
                method,
                url,
                headers=self._get_headers(),
                timeout=self._settings.timeout_seconds,
                **kwargs,
            )
        except requests.exceptions.RequestException as e:
            self._logger.error("backend_unreachable", method=method, path=path, error=str(e))
            raise NetworkFailure(f"{method} {path} failed: {e}") from e

        if resp.status_code >= 400:
            server_message = self._extract_message(resp)
            self._logger.warning(
                "backend_error_status",
                method=method,
                path=path,
                status=resp.status_code,
                server_message=server_message,
            )
            if resp.status_code == 404:
                raise NotFoundError(server_message or f"{method} {path}: not found")
            raise NetworkFailure(
                f"{method} {path} returned {resp.status_code}",
                status_code=resp.status_code,
                server_message=server_message,
            )

        if resp.status_code == 204 or not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as e:
            raise NetworkFailure(f"{method} {path} returned a non-JSON body") from e

    @staticmethod
    def _extract_message(resp: requests.Response) -> Optional[str]:
        """The backend reports errors as {"message": "..."}."""
        try:
            body = resp.json()
        except ValueError:
            return None
        if isinstance(body, dict):
            message = body.get("message")
            if isinstance(message, list):
                return "; ".join(str(m) for m in message)
            return str(message) if message else None
        return None

    def get(self, path: str, params: Optional[dict] = None) -> Any:
        return self._request("GET", path, params=params)

    def post(self, path: str, data: Optional[dict] = None) -> Any:
        return self._request("POST", path, json=data)

    def patch(self, path: str, data: Optional[dict] = None) -> Any:
        return self._request("PATCH", path, json=data)

    def delete(self, path: str, params: Optional[dict] = None) -> Any:
        return self._request("DELETE", path, params=params)

    # ─── Users ───

    async def get_current_user(self) -> User:
        return User.model_validate(self.get("/users/me"))

    # ─── Groups ───

    async def get_group(self, group_id: int) -> Group:
        return Group.model_validate(self.get(f"/groups/{group_id}"))

    async def update_group(
        self,
        group_id: int,
        name: str,
        description: Optional[str] = None,
    ) -> Group:
        # null clears the description
        body: dict[str, Any] = {"name": name, "description": description or None}
        return Group.model_validate(self.patch(f"/groups/{group_id}", body))

    async def delete_group(self, group_id: int) -> None:
        self.delete(f"/groups/{group_id}")

    async def leave_group(self, group_id: int) -> None:
        self.post(f"/groups/{group_id}/leave")

    async def list_members(self, group_id: int) -> list[GroupMember]:
        rows = self.get(f"/groups/{group_id}/members") or []
        return [GroupMember.model_validate(row) for row in rows]

    async def add_member(self, group_id: int, user_id: int, role_id: int) -> GroupMember:
        row = self.post(f"/groups/{group_id}/members", {"userId": user_id, "roleId": role_id})
        return GroupMember.model_validate(row)

    async def remove_member(self, group_id: int, member_id: int) -> None:
        self.delete(f"/groups/{group_id}/members/{member_id}")

    async def update_member_role(
        self,
        group_id: int,
        member_id: int,
        role_id: int,
    ) -> GroupMember:
        row = self.patch(f"/groups/{group_id}/members/{member_id}", {"roleId": role_id})
        return GroupMember.model_validate(row)

    async def list_roles(self, group_id: int) -> list[GroupRole]:
        rows = self.get(f"/groups/{group_id}/roles") or []
        return [GroupRole.model_validate(row) for row in rows]

    async def create_role(self, group_id: int, draft: RoleDraft) -> GroupRole:
        row = self.post(f"/groups/{group_id}/roles", draft.to_wire())
        return GroupRole.model_validate(row)

    async def update_role(self, group_id: int, role_id: int, draft: RoleDraft) -> GroupRole:
        row = self.patch(f"/groups/{group_id}/roles/{role_id}", draft.to_wire())
        return GroupRole.model_validate(row)

    async def delete_role(self, group_id: int, role_id: int) -> None:
        self.delete(f"/groups/{group_id}/roles/{role_id}")

    # ─── Accounts ───

    async def list_accounts(self, group_id: Optional[int] = None) -> list[Account]:
        params = {"groupId": group_id} if group_id is not None else None
        rows = self.get("/accounts", params=params) or []
        return [Account.model_validate(row) for row in rows]

    async def get_current_balance(self, account_id: int) -> Optional[AccountBalance]:
        row = self.get(f"/accounts/{account_id}/balance")
        return AccountBalance.model_validate(row) if row else None

    async def add_balance(
        self,
        account_id: int,
        amount: Decimal,
        effective_date: datetime,
    ) -> AccountBalance:
        # Decimal travels as its exact string form, never through float
        body = {"amount": str(amount), "date": effective_date.isoformat()}
        row = self.post(f"/accounts/{account_id}/balances", body)
        if not row:
            return AccountBalance(account_id=account_id, amount=amount, date=effective_date)
        return AccountBalance.model_validate(row)

    async def count_transactions(self, account_id: int) -> int:
        body = self.get(f"/accounts/{account_id}/transactions/count")
        if isinstance(body, dict):
            return int(body.get("count", 0))
        return int(body or 0)

    async def delete_account(self, account_id: int, force: bool = False) -> None:
        params = {"force": "true"} if force else None
        self.delete(f"/accounts/{account_id}", params=params)

    async def move_transactions(self, source_account_id: int, target_account_id: int) -> int:
        body = self.post(
            f"/accounts/{source_account_id}/transactions/move",
            {"targetAccountId": target_account_id},
        )
        if isinstance(body, dict):
            return int(body.get("moved", body.get("count", 0)))
        return 0
