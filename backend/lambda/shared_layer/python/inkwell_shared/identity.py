"""inkwell_shared.identity — Cognito user pool as an identity directory.

Two lookups back author resolution:

    get_user_by_username     AdminGetUser, a direct point lookup
    find_user_by_subject_id  ListUsers filtered on `sub`, at most one match;
                             search results may carry partial attributes

"Not found" is a value (None). Every other failure is raised as
IdentityDirectoryError; callers decide whether that is fatal.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Optional

from botocore.exceptions import BotoCoreError, ClientError

from inkwell_shared import config
from inkwell_shared.aws_clients import _get_cognito

logger = logging.getLogger(__name__)

_NOT_FOUND_CODES = {"UserNotFoundException", "ResourceNotFoundException"}


class IdentityDirectoryError(RuntimeError):
    """Raised when the identity directory cannot answer a lookup."""

    def __init__(self, message: str, code: str = "") -> None:
        super().__init__(message)
        self.code = code


@dataclass(frozen=True)
class DirectoryUser:
    """A directory record: canonical username plus prefix-stripped attributes."""

    username: str
    attributes: Dict[str, str] = field(default_factory=dict)
    enabled: bool = True


def _strip_attributes(raw: Optional[Iterable[Dict[str, Any]]], prefix: str) -> Dict[str, str]:
    attributes: Dict[str, str] = {}
    for attr in raw or []:
        name = attr.get("Name")
        value = attr.get("Value")
        if not name or value is None:
            continue
        if prefix and name.startswith(prefix):
            name = name[len(prefix) :]
        attributes[name] = value
    return attributes


def _error_code(exc: ClientError) -> str:
    return exc.response.get("Error", {}).get("Code", "Unknown")


class IdentityDirectory:
    """Cognito user pool lookups for one pool."""

    def __init__(
        self,
        user_pool_id: Optional[str] = None,
        client: Any = None,
        attribute_prefix: Optional[str] = None,
    ) -> None:
        self.user_pool_id = user_pool_id if user_pool_id is not None else config.COGNITO_USER_POOL_ID
        self.attribute_prefix = (
            attribute_prefix if attribute_prefix is not None else config.COGNITO_CUSTOM_ATTRIBUTE_PREFIX
        )
        self._client = client

    @property
    def client(self):
        if self._client is None:
            self._client = _get_cognito()
        return self._client

    def _require_pool(self) -> None:
        if not self.user_pool_id:
            raise IdentityDirectoryError("COGNITO_USER_POOL_ID not set")

    def get_user_by_username(self, username: str) -> Optional[DirectoryUser]:
        if not username:
            return None
        self._require_pool()
        try:
            resp = self.client.admin_get_user(UserPoolId=self.user_pool_id, Username=username)
        except ClientError as exc:
            if _error_code(exc) in _NOT_FOUND_CODES:
                return None
            raise IdentityDirectoryError(f"AdminGetUser failed for {username!r}: {exc}") from exc
        except BotoCoreError as exc:
            raise IdentityDirectoryError(f"AdminGetUser failed for {username!r}: {exc}") from exc

        return DirectoryUser(
            username=resp.get("Username") or username,
            attributes=_strip_attributes(resp.get("UserAttributes"), self.attribute_prefix),
            enabled=bool(resp.get("Enabled", True)),
        )

    def find_user_by_subject_id(self, subject_id: str) -> Optional[DirectoryUser]:
        if not subject_id:
            return None
        if '"' in subject_id or "\\" in subject_id:
            raise IdentityDirectoryError(f"Refusing to search with malformed subject id {subject_id!r}")
        self._require_pool()
        try:
            resp = self.client.list_users(
                UserPoolId=self.user_pool_id,
                Filter=f'sub = "{subject_id}"',
                Limit=1,
            )
        except (BotoCoreError, ClientError) as exc:
            raise IdentityDirectoryError(f"ListUsers failed for sub {subject_id!r}: {exc}") from exc

        users = resp.get("Users") or []
        if not users:
            return None
        user = users[0]
        return DirectoryUser(
            username=user.get("Username") or "",
            attributes=_strip_attributes(user.get("Attributes"), self.attribute_prefix),
            enabled=bool(user.get("Enabled", True)),
        )

    def update_user_attributes(self, username: str, attributes: Dict[str, str]) -> None:
        """Write attributes for one user. Bare custom names get the prefix added."""
        self._require_pool()
        standard = {"preferred_username", "name", "email", "picture", "nickname"}
        payload = []
        for name, value in attributes.items():
            if name not in standard and self.attribute_prefix and not name.startswith(self.attribute_prefix):
                name = f"{self.attribute_prefix}{name}"
            payload.append({"Name": name, "Value": value})
        try:
            self.client.admin_update_user_attributes(
                UserPoolId=self.user_pool_id,
                Username=username,
                UserAttributes=payload,
            )
        except ClientError as exc:
            raise IdentityDirectoryError(
                f"AdminUpdateUserAttributes failed for {username!r}: {exc}",
                code=_error_code(exc),
            ) from exc
        except BotoCoreError as exc:
            raise IdentityDirectoryError(f"AdminUpdateUserAttributes failed for {username!r}: {exc}") from exc
