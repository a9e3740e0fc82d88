"""Vault API 클라이언트.

Every gateway (this HTTP client and ``ComposeVaultGateway``) exposes the same
surface used by the bootstrap and sync code:

    is_ready, mount_exists, enable_mount, policy_write,
    issue_token, kv_put, kv_get
"""

from typing import Any, Optional

import httpx

from thothixctl.config import Settings


class VaultError(Exception):
    """Vault API 오류."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        operation: Optional[str] = None,
        path: Optional[str] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.operation = operation
        self.path = path
        super().__init__(self.message)

    def __str__(self) -> str:
        context = " ".join(part for part in (self.operation, self.path) if part)
        return f"{context}: {self.message}" if context else self.message


class StoreUnavailable(VaultError):
    """Vault unreachable, sealed or failing with 5xx."""


class AuthFailure(VaultError):
    """Token rejected (401/403)."""


class StoreOperationFailed(VaultError):
    """Request reached Vault but was refused."""


def error_for_status(
    status_code: int,
    message: str,
    operation: Optional[str] = None,
    path: Optional[str] = None,
) -> VaultError:
    """Map an HTTP status to the matching error type."""
    if status_code in (401, 403):
        cls: type[VaultError] = AuthFailure
    elif status_code >= 500:
        cls = StoreUnavailable
    else:
        cls = StoreOperationFailed
    return cls(message, status_code, operation, path)


class VaultClient:
    """HashiCorp Vault HTTP API 클라이언트."""

    def __init__(
        self,
        addr: str,
        token: Optional[str] = None,
        skip_verify: bool = False,
        timeout: float = 30.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.addr = addr.rstrip("/")
        self.token = token
        self.skip_verify = skip_verify
        self.timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.Client] = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "VaultClient":
        return cls(
            addr=settings.vault_addr,
            token=settings.vault_token,
            skip_verify=settings.vault_skip_verify,
        )

    @property
    def client(self) -> httpx.Client:
        """HTTP 클라이언트 (lazy initialization)."""
        if self._client is None:
            headers: dict[str, str] = {}
            if self.token:
                headers["X-Vault-Token"] = self.token

            self._client = httpx.Client(
                base_url=self.addr,
                headers=headers,
                verify=not self.skip_verify,
                timeout=self.timeout,
                transport=self._transport,
            )

        # 타입 체커를 위한 로컬 변수 사용
        client = self._client
        assert client is not None
        return client

    def _request(
        self,
        method: str,
        path: str,
        data: Optional[dict] = None,
        params: Optional[dict] = None,
        operation: Optional[str] = None,
    ) -> dict[str, Any]:
        """API 요청 실행."""
        try:
            http_client = self.client  # 로컬 변수로 타입 좁히기
            response = http_client.request(
                method=method,
                url=f"/v1/{path}",
                json=data,
                params=params,
            )
        except httpx.RequestError as e:
            raise StoreUnavailable(f"connection failed: {e}", operation=operation, path=path) from e
        except httpx.InvalidURL as e:
            raise StoreOperationFailed(f"invalid Vault address: {e}", operation=operation, path=path) from e

        if response.status_code == 204:
            return {}

        try:
            result = response.json() if response.content else {}
        except ValueError:
            result = {}

        if response.status_code >= 400:
            errors = result.get("errors", []) if isinstance(result, dict) else []
            error_msg = "; ".join(errors) if errors else f"HTTP {response.status_code}"
            raise error_for_status(response.status_code, error_msg, operation, path)

        return result

    def close(self) -> None:
        """클라이언트 종료."""
        if self._client is not None:
            self._client.close()
            self._client = None

    def __enter__(self) -> "VaultClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    # ─────────────────────────────────────────────────────────────────────────
    # 헬스체크
    # ─────────────────────────────────────────────────────────────────────────

    def health(self) -> dict[str, Any]:
        """서버 상태 확인."""
        try:
            response = self.client.get(
                "/v1/sys/health",
                params={"standbyok": "true"},
            )
            return response.json()
        except (httpx.HTTPError, httpx.InvalidURL, ValueError):
            return {"initialized": False, "sealed": True}

    def is_ready(self) -> bool:
        """Vault initialized and unsealed; never raises."""
        health = self.health()
        return bool(health.get("initialized")) and not health.get("sealed", True)

    # ─────────────────────────────────────────────────────────────────────────
    # Secrets engines
    # ─────────────────────────────────────────────────────────────────────────

    def mount_exists(self, mount: str) -> bool:
        """True iff ``mount`` is an enabled secrets engine; errors count as absent."""
        try:
            result = self._request("GET", "sys/mounts", operation="list mounts")
        except VaultError:
            return False
        mounts = result.get("data") or result
        return f"{mount.strip('/')}/" in mounts

    def enable_mount(self, mount: str, kind: str = "kv-v2") -> None:
        """Enable a secrets engine; Vault rejects an existing path."""
        data: dict[str, Any] = {"type": kind}
        if kind == "kv-v2":
            data = {"type": "kv", "options": {"version": "2"}}
        self._request("POST", f"sys/mounts/{mount.strip('/')}", data=data, operation="enable mount")

    # ─────────────────────────────────────────────────────────────────────────
    # Policy / Token
    # ─────────────────────────────────────────────────────────────────────────

    def policy_write(self, name: str, policy: str) -> None:
        """정책 저장 (덮어쓰기)."""
        self._request(
            "PUT",
            f"sys/policies/acl/{name}",
            data={"policy": policy},
            operation="write policy",
        )

    def token_create(
        self,
        policies: list[str],
        ttl: Optional[str] = None,
        display_name: Optional[str] = None,
        renewable: bool = True,
        no_default_policy: bool = False,
    ) -> dict[str, Any]:
        """새 토큰 생성."""
        data: dict[str, Any] = {
            "policies": policies,
            "renewable": renewable,
            "no_default_policy": no_default_policy,
        }
        if ttl:
            data["ttl"] = ttl
        if display_name:
            data["display_name"] = display_name
        return self._request("POST", "auth/token/create", data=data, operation="create token")

    def issue_token(self, policy: str, ttl: str, renewable: bool, display_name: str) -> str:
        """Mint a new token for ``policy`` and return the client token."""
        result = self.token_create([policy], ttl=ttl, display_name=display_name, renewable=renewable)
        token = (result.get("auth") or {}).get("client_token")
        if not token:
            raise StoreOperationFailed(
                "no client_token in response", operation="create token", path=policy
            )
        return token

    # ─────────────────────────────────────────────────────────────────────────
    # KV v2 Secrets Engine
    # ─────────────────────────────────────────────────────────────────────────

    def kv_get(self, mount: str, path: str) -> Optional[dict[str, Any]]:
        """KV v2 시크릿 조회. Returns ``None`` when the secret does not exist."""
        try:
            result = self._request("GET", f"{mount}/data/{path}", operation="read secret")
        except StoreOperationFailed as e:
            if e.status_code == 404:
                return None
            raise
        return (result.get("data") or {}).get("data") or {}

    def kv_put(self, mount: str, path: str, data: dict[str, Any]) -> dict[str, Any]:
        """KV v2 시크릿 저장 (새 버전 생성)."""
        return self._request(
            "POST",
            f"{mount}/data/{path}",
            data={"data": data},
            operation="write secret",
        )
