"""Remote client facade over hvac.

``StoreClient`` exposes exactly the store operations vkv needs and translates
hvac and transport failures into the vkv error taxonomy. Every call runs in a
namespace scope: the ``X-Vault-Namespace`` header of the shared hvac adapter
is set for the duration of the call and restored afterwards, so one client
can be used across namespaces.
"""

import subprocess
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple

import hvac
import requests
from hvac.exceptions import (
    Forbidden,
    InvalidPath,
    InvalidRequest,
    Unauthorized,
    VaultDown,
    VaultError,
)

from .config import ClientConfig
from .exceptions import (
    ConfigurationError,
    ConflictError,
    ForbiddenError,
    NotFoundError,
    ProtocolError,
    TransportError,
    VkvError,
)
from .logging import get_logger
from .models import Capability, EngineInfo, SecretLeaf
from .projection import join_path, sort_key

logger = get_logger(__name__)

KV_ENGINE_TYPES = ("kv", "generic")


def run_login_command(command: str) -> str:
    """Run a shell command and use its trimmed standard output as token.

    Raises:
        ConfigurationError: If the command fails or prints nothing
    """
    try:
        result = subprocess.run(
            ["bash", "-c", command], capture_output=True, text=True, check=False
        )
    except OSError as e:
        raise ConfigurationError(f"cannot run login command: {e}") from e

    if result.returncode != 0:
        raise ConfigurationError(
            f"login command exited with code {result.returncode}: {result.stderr.strip()}",
            details={"exit_code": result.returncode},
        )
    token = result.stdout.strip()
    if not token:
        raise ConfigurationError("login command returned an empty token")
    return token


class StoreClient:
    """Namespace-aware KV operations against a Vault server."""

    def __init__(self, client: Any, address: str = "", namespace: str = ""):
        """Initialize the facade.

        Args:
            client: Authenticated ``hvac.Client`` (or compatible object)
            address: Server address, used to build UI links
            namespace: Base namespace every namespace argument is relative to
        """
        self._client = client
        self.address = address.rstrip("/")
        self.namespace = namespace.strip("/")
        self._kv_versions: Dict[Tuple[str, str], str] = {}

    @classmethod
    def from_config(
        cls,
        config: ClientConfig,
        client_factory: Optional[Callable[..., Any]] = None,
    ) -> "StoreClient":
        """Build an authenticated client from connection settings.

        Args:
            config: Connection settings
            client_factory: Callable building the hvac client (defaults to
                ``hvac.Client``)

        Returns:
            Authenticated StoreClient

        Raises:
            ConfigurationError: If address or token cannot be resolved
            ForbiddenError: If the token is rejected
        """
        if not config.address:
            raise ConfigurationError(
                "store address is required (set STORE_ADDRESS or VAULT_ADDR)"
            )
        token = config.token
        if config.login_command:
            logger.debug("obtaining token from login command")
            token = run_login_command(config.login_command)
        if not token:
            raise ConfigurationError(
                "store token is required (set STORE_TOKEN, VAULT_TOKEN or VKV_LOGIN_COMMAND)"
            )

        factory = client_factory or hvac.Client
        client = factory(
            url=config.address,
            token=token,
            namespace=config.namespace or None,
            verify=not config.skip_verify,
            timeout=config.timeout,
        )
        store = cls(client, address=config.address, namespace=config.namespace)
        store.verify_authentication()
        return store

    def effective_namespace(self, namespace: Optional[str] = None) -> str:
        return join_path(self.namespace, namespace or "")

    @contextmanager
    def _translate_errors(self, operation: str, path: str) -> Iterator[None]:
        try:
            yield
        except VkvError:
            raise
        except InvalidPath as e:
            raise NotFoundError(
                f"{operation} {path!r}: not found",
                details={"operation": operation, "path": path},
            ) from e
        except (Unauthorized, Forbidden) as e:
            raise ForbiddenError(
                f"{operation} {path!r}: permission denied",
                details={"operation": operation, "path": path},
            ) from e
        except InvalidRequest as e:
            if "already" in str(e).lower():
                raise ConflictError(
                    f"{operation} {path!r}: {e}",
                    details={"operation": operation, "path": path},
                ) from e
            raise ProtocolError(
                f"{operation} {path!r}: {e}",
                details={"operation": operation, "path": path},
            ) from e
        except VaultDown as e:
            raise TransportError(
                f"{operation} {path!r}: store is sealed or unavailable: {e}",
                details={"operation": operation, "path": path},
            ) from e
        except VaultError as e:
            logger.debug(
                "unexpected store error",
                extra={"path": path, "event_type": "store_error"},
            )
            raise ProtocolError(
                f"{operation} {path!r}: {e}",
                details={"operation": operation, "path": path},
            ) from e
        except requests.exceptions.RequestException as e:
            raise TransportError(
                f"{operation} {path!r}: {e}",
                details={"operation": operation, "path": path},
            ) from e
        except (KeyError, TypeError, AttributeError, ValueError) as e:
            raise ProtocolError(
                f"{operation} {path!r}: malformed response: {e}",
                details={"operation": operation, "path": path},
            ) from e

    @contextmanager
    def _scope(
        self, operation: str, path: str, namespace: Optional[str] = None
    ) -> Iterator[None]:
        """Set the namespace header for one call and translate its errors."""
        adapter = self._client.adapter
        previous = adapter.namespace
        adapter.namespace = self.effective_namespace(namespace) or None
        try:
            with self._translate_errors(operation, path):
                yield
        finally:
            adapter.namespace = previous

    def verify_authentication(self) -> None:
        """Check the token once.

        Raises:
            ForbiddenError: If the store rejects the token
        """
        with self._translate_errors("authenticate", self.address):
            authenticated = self._client.is_authenticated()
        if not authenticated:
            raise ForbiddenError(
                f"authentication against {self.address or 'the store'} failed, check the token"
            )

    def engine_type_version(
        self, engine: str, namespace: Optional[str] = None
    ) -> Tuple[str, str]:
        """Return the (type, kv version) pair of an engine.

        ``generic`` engines and kv engines without version 2 report "1".

        Raises:
            NotFoundError: If the engine does not exist
        """
        info = self.engine_info(engine, namespace)
        return info.type, info.version

    def engine_info(self, engine: str, namespace: Optional[str] = None) -> EngineInfo:
        """Read the type, kv version and description of an engine mount.

        Raises:
            NotFoundError: If the engine does not exist
        """
        engine = engine.strip("/")
        with self._scope("read engine", engine, namespace):
            response = self._client.read(f"sys/internal/ui/mounts/{engine}")
        if not response:
            raise NotFoundError(
                f"engine {engine!r} not found", details={"path": engine}
            )
        data = response.get("data") or {}
        engine_type = data.get("type", "")
        version = str((data.get("options") or {}).get("version", ""))
        if engine_type == "generic" or version == "1":
            version = "1"
        else:
            version = "2"
        return EngineInfo(type=engine_type, version=version, description=data.get("description") or "")

    def _kv_version(self, engine: str, namespace: Optional[str]) -> str:
        key = (self.effective_namespace(namespace), engine.strip("/"))
        if key not in self._kv_versions:
            self._kv_versions[key] = self.engine_type_version(engine, namespace)[1]
        return self._kv_versions[key]

    def list_keys(
        self, engine: str, sub_path: str = "", namespace: Optional[str] = None
    ) -> List[str]:
        """List the direct children of a directory.

        Returns:
            Child names; directories end with "/"

        Raises:
            NotFoundError: If nothing is listable at the path
        """
        engine = engine.strip("/")
        path = join_path(engine, sub_path)
        version = self._kv_version(engine, namespace)
        with self._scope("list", path, namespace):
            if version == "1":
                response = self._client.secrets.kv.v1.list_secrets(
                    path=sub_path, mount_point=engine
                )
            else:
                response = self._client.secrets.kv.v2.list_secrets(
                    path=sub_path, mount_point=engine
                )
            if not response:
                raise NotFoundError(f"list {path!r}: not found", details={"path": path})
            keys = (response.get("data") or {}).get("keys")
        if not isinstance(keys, list):
            raise ProtocolError(
                f"list {path!r}: response contains no key list", details={"path": path}
            )
        return [str(k) for k in keys]

    def read_secret(
        self, engine: str, sub_path: str, namespace: Optional[str] = None
    ) -> SecretLeaf:
        """Read the current version of a secret.

        Raises:
            NotFoundError: If the path is not a leaf or its current version
                was deleted
        """
        engine = engine.strip("/")
        path = join_path(engine, sub_path)
        version = self._kv_version(engine, namespace)
        with self._scope("read", path, namespace):
            if version == "1":
                response = self._client.secrets.kv.v1.read_secret(
                    path=sub_path, mount_point=engine
                )
                if not response or response.get("data") is None:
                    raise NotFoundError(f"read {path!r}: not found", details={"path": path})
                return SecretLeaf(data=dict(response["data"]))

            response = self._client.secrets.kv.v2.read_secret_version(
                path=sub_path, mount_point=engine, raise_on_deleted_version=True
            )
            body = (response or {}).get("data") or {}
            if body.get("data") is None:
                raise NotFoundError(
                    f"read {path!r}: no current version", details={"path": path}
                )
            metadata = body.get("metadata") or {}
            return SecretLeaf(
                data=dict(body["data"]),
                version=metadata.get("version"),
                custom_metadata=dict(metadata.get("custom_metadata") or {}),
            )

    def write_secret(
        self,
        engine: str,
        sub_path: str,
        data: Dict[str, Any],
        namespace: Optional[str] = None,
    ) -> Optional[int]:
        """Create or overwrite a secret.

        Returns:
            The new version for KV v2 engines, None for KV v1
        """
        engine = engine.strip("/")
        path = join_path(engine, sub_path)
        version = self._kv_version(engine, namespace)
        with self._scope("write", path, namespace):
            if version == "1":
                self._client.secrets.kv.v1.create_or_update_secret(
                    path=sub_path, secret=data, mount_point=engine
                )
                return None
            response = self._client.secrets.kv.v2.create_or_update_secret(
                path=sub_path, secret=data, mount_point=engine
            )
        return ((response or {}).get("data") or {}).get("version")

    def _mounts(self, namespace: Optional[str]) -> Dict[str, Any]:
        with self._scope("list engines", self.effective_namespace(namespace) or "/", namespace):
            response = self._client.sys.list_mounted_secrets_engines() or {}
        mounts = response.get("data")
        if not isinstance(mounts, dict):
            mounts = response
        return {k: v for k, v in mounts.items() if isinstance(v, dict)}

    def list_engines(self, namespace: Optional[str] = None) -> List[str]:
        """List the KV engines of a namespace.

        Returns:
            Sorted mount names, each ending with "/"
        """
        mounts = self._mounts(namespace)
        return sorted(
            (name for name, mount in mounts.items() if mount.get("type") in KV_ENGINE_TYPES),
            key=sort_key,
        )

    def list_namespaces(self, namespace: Optional[str] = None) -> List[str]:
        """List the direct child namespaces of a namespace.

        Returns:
            Sorted child names without trailing "/"; empty when the store has
            none or does not support namespaces
        """
        label = self.effective_namespace(namespace) or "/"
        try:
            with self._scope("list namespaces", label, namespace):
                response = self._client.sys.list_namespaces()
        except NotFoundError:
            return []
        data = (response or {}).get("data") or {}
        names = data.get("key_info") or data.get("keys") or []
        return sorted({str(n).strip("/") for n in names}, key=sort_key)

    def create_namespace(self, parent: str, name: str, idempotent: bool = False) -> bool:
        """Create ``name`` below ``parent``.

        Returns:
            True if the namespace was created, False if it already existed

        Raises:
            ConflictError: If it exists and ``idempotent`` is False
        """
        try:
            with self._scope("create namespace", join_path(parent, name), parent):
                self._client.sys.create_namespace(path=name)
        except ConflictError:
            if not idempotent:
                raise
            logger.debug(
                f"namespace {join_path(parent, name)!r} already exists",
                extra={"namespace": join_path(parent, name)},
            )
            return False
        return True

    def enable_engine(
        self, name: str, idempotent: bool = False, namespace: Optional[str] = None
    ) -> bool:
        """Enable a KV v2 engine at ``name``.

        Returns:
            True if the engine was enabled, False if a KV v2 engine was
            already there and ``idempotent`` is set

        Raises:
            ConflictError: If an engine of another type is mounted there, or
                a KV v2 engine exists and ``idempotent`` is False
        """
        name = name.strip("/")
        mount = self._mounts(namespace).get(name + "/")
        if mount is not None:
            version = str((mount.get("options") or {}).get("version", ""))
            if mount.get("type") != "kv" or version != "2":
                raise ConflictError(
                    f'a secret engine under "{name}" is already enabled and is not of type kv2',
                    details={"path": name, "type": mount.get("type")},
                )
            if not idempotent:
                raise ConflictError(
                    f'a secret engine under "{name}" is already enabled. Use --force for overwriting',
                    details={"path": name},
                )
            return False

        with self._scope("enable engine", name, namespace):
            self._client.sys.enable_secrets_engine(
                backend_type="kv", path=name, options={"version": "2"}
            )
        self._kv_versions[(self.effective_namespace(namespace), name)] = "2"
        logger.debug(f"enabled kv2 engine {name!r}", extra={"engine": name})
        return True

    def capabilities(self, path: str, namespace: Optional[str] = None) -> Capability:
        """Return the token's capabilities on ``path``."""
        with self._scope("read capabilities", path, namespace):
            response = self._client.adapter.post(
                "/v1/sys/capabilities-self", json={"paths": [path]}
            )
            body = response.get("data") if isinstance(response.get("data"), dict) else response
            names = body.get(path, body.get("capabilities"))
        if names is None:
            raise ProtocolError(
                f"read capabilities {path!r}: response contains no capabilities",
                details={"path": path},
            )
        return Capability.from_names(list(names))

    def lookup_token(self) -> Dict[str, Any]:
        """Look up the current token without touching the namespace header."""
        with self._translate_errors("lookup token", "auth/token/lookup-self"):
            response = self._client.auth.token.lookup_self()
            return dict(response.get("data") or {})

    def renew_token(self, increment: int) -> None:
        with self._translate_errors("renew token", "auth/token/renew-self"):
            self._client.auth.token.renew_self(increment=increment)
