import os
from functools import lru_cache
from typing import Optional

from google.cloud import secretmanager


@lru_cache(maxsize=1)
def _get_client() -> secretmanager.SecretManagerServiceClient:
    return secretmanager.SecretManagerServiceClient()


def get_project_id() -> str:
    project_id = os.getenv("GCP_PROJECT_ID")
    if not project_id:
        raise RuntimeError("GCP_PROJECT_ID is not set")
    return project_id


@lru_cache(maxsize=64)
def get_secret_value(secret_name: str, version: str = "latest") -> str:
    if not secret_name:
        raise ValueError("secret_name is required")

    # Parse Google Cloud Run secret reference format: "Secret:secret-name:version"
    if secret_name.startswith("Secret:"):
        parts = secret_name.split(":")
        if len(parts) >= 2:
            secret_name = parts[1]
        if len(parts) >= 3:
            version = parts[2]

    name = f"projects/{get_project_id()}/secrets/{secret_name}/versions/{version}"
    response = _get_client().access_secret_version(name=name)
    return response.payload.data.decode("utf-8")


def resolve_setting(env_var: str, required: bool = True) -> Optional[str]:
    """
    Read a sensitive setting either directly from `env_var` or, when
    `<env_var>_NAME` is set, from Secret Manager.

    Local development sets the value directly; Cloud Run points the `_NAME`
    variable at a secret.
    """
    secret_name = os.getenv(f"{env_var}_NAME")
    if secret_name:
        return get_secret_value(secret_name)

    value = os.getenv(env_var)
    if value:
        return value

    if required:
        raise RuntimeError(f"{env_var} (or {env_var}_NAME) is not set")
    return None
